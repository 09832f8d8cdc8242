"""Tests for psh.bootstrap."""

from __future__ import annotations

from conftest import FakeFactory
from psh.bootstrap import FALLBACK_SHELL_NAME, bootstrap, login_shell_name
from psh.config import PshConfig, ShellsConfig
from psh.registry import BUILTIN_NAMES
from psh.shell.spec import LocalSpec, RemoteSpec


def config_with(catalog=None, default_shell=None) -> PshConfig:
    return PshConfig(shells=ShellsConfig(catalog=catalog or {}, default_shell=default_shell))


class TestLoginShellName:
    def test_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("SHELL", "/usr/local/bin/fish")
        assert login_shell_name() == "fish"

    def test_falls_back_to_passwd(self, monkeypatch) -> None:
        monkeypatch.delenv("SHELL", raising=False)
        name = login_shell_name()
        assert name is None or "/" not in name


class TestBootstrap:
    async def test_builtins_catalog_and_fallback(self, fake_factory: FakeFactory) -> None:
        config = config_with({"zsh": LocalSpec(program="zsh"), "box": RemoteSpec(host="box")})
        app = await bootstrap(config, 100, 30, session_factory=fake_factory)
        names = {name for name, _ in app.router.list_entries()}
        assert set(BUILTIN_NAMES) <= names
        assert {"zsh", "box", FALLBACK_SHELL_NAME} <= names
        assert await app.router.list_running_entries() == ["bash", "box", "zsh"]
        assert all((s.cols, s.rows) == (100, 30) for s in fake_factory.spawned)

    async def test_listeners_see_every_started_shell(self, fake_factory: FakeFactory) -> None:
        seen = []
        config = config_with({"zsh": LocalSpec(program="zsh")})
        await bootstrap(
            config,
            session_factory=fake_factory,
            listeners=[lambda name, session: seen.append((name, session))],
        )
        assert [name for name, _ in seen] == ["zsh", "bash"]
        assert [session for _, session in seen] == fake_factory.spawned

    async def test_start_failure_is_not_fatal(self, fake_factory: FakeFactory) -> None:
        fake_factory.fail_for.add("broken")
        config = config_with({"broken": LocalSpec(program="nope")})
        app = await bootstrap(config, session_factory=fake_factory)
        assert app.router.registry.has("broken")
        assert await app.router.list_running_entries() == ["bash"]

    async def test_configured_bash_is_kept(self, fake_factory: FakeFactory) -> None:
        spec = LocalSpec(program="/opt/bash5/bin/bash")
        app = await bootstrap(config_with({"bash": spec}), session_factory=fake_factory)
        assert app.router.registry.get_shell_spec("bash") == spec
        assert fake_factory.count("bash") == 1

    async def test_default_from_config(self, fake_factory: FakeFactory) -> None:
        config = config_with({"zsh": LocalSpec(program="zsh")}, default_shell="zsh")
        app = await bootstrap(config, session_factory=fake_factory)
        assert app.default_shell == "zsh"
        assert app.router.get_default_mode() == "zsh"
        assert app.router.get_current_mode() is None

    async def test_default_from_login_shell(self, fake_factory: FakeFactory, monkeypatch) -> None:
        monkeypatch.setenv("SHELL", "/bin/zsh")
        config = config_with({"zsh": LocalSpec(program="zsh")}, default_shell="missing")
        app = await bootstrap(config, session_factory=fake_factory)
        assert app.default_shell == "zsh"

    async def test_default_falls_back_to_bash(self, fake_factory: FakeFactory, monkeypatch) -> None:
        monkeypatch.setenv("SHELL", "/bin/tcsh")
        app = await bootstrap(config_with(), session_factory=fake_factory)
        assert app.default_shell == "bash"
        assert app.router.get_default_mode() == "bash"
