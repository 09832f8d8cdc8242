"""Configuration: Pydantic models for psh settings."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from psh.errors import ConfigError
from psh.shell.spec import ShellSpec

DEFAULT_CONFIG_PATH = "~/.psh/config.json"

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LoggingConfig(BaseModel):
    """Where psh writes its own log. Session output never goes here."""

    file: str = Field(default="~/.psh/psh.log", description="Log file path")
    level: str = Field(default="INFO", description="Root log level")

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if value not in _LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return value

    @property
    def path(self) -> Path:
        return Path(self.file).expanduser()


class ShellsConfig(BaseModel):
    """Shells registered at startup, and which one unprefixed input goes to."""

    default_shell: str | None = Field(
        default=None,
        description="Name that receives unprefixed input; falls back to the login shell",
    )
    catalog: dict[str, ShellSpec] = Field(default_factory=dict)


class ReplConfig(BaseModel):
    prompt: str = Field(default="psh")


class PshConfig(BaseModel):
    """Top-level psh configuration.

    Example::

        {
          "shells": {
            "default_shell": "zsh",
            "catalog": {
              "zsh": {"type": "local", "program": "zsh"},
              "box": {"type": "remote", "host": "me@box",
                      "backend": {"kind": "ssh", "port": 2222}}
            }
          }
        }
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    shells: ShellsConfig = Field(default_factory=ShellsConfig)
    repl: ReplConfig = Field(default_factory=ReplConfig)

    @staticmethod
    def resolve_path(config_path: str | None = None) -> Path:
        """The file :meth:`load` reads: argument, then ``$PSH_CONFIG``, then the default."""
        raw = config_path or os.environ.get("PSH_CONFIG") or DEFAULT_CONFIG_PATH
        return Path(raw).expanduser()

    @classmethod
    def load(cls, config_path: str | None = None) -> PshConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults. A missing file is not an
        error.

        Env vars:
            PSH_CONFIG         - Config file path when none is given
            PSH_DEFAULT_SHELL  - Override shells.default_shell
            PSH_LOG_FILE       - Override logging.file
            PSH_LOG_LEVEL      - Override logging.level

        Raises:
            ConfigError: The file exists but is not valid JSON, or does not
                match the schema.
        """
        # .env values win over stale exported ones
        load_dotenv(find_dotenv(usecwd=True), override=True)

        path = cls.resolve_path(config_path)
        config_data: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path) as f:
                    config_data = json.load(f)
            except (OSError, json.JSONDecodeError) as exc:
                raise ConfigError(str(path), str(exc)) from exc
            if not isinstance(config_data, dict):
                raise ConfigError(str(path), "top level must be a JSON object")

        shells = dict(config_data.get("shells") or {})
        env_default = os.environ.get("PSH_DEFAULT_SHELL")
        if env_default:
            shells["default_shell"] = env_default
        if shells:
            config_data["shells"] = shells

        log = dict(config_data.get("logging") or {})
        env_log_file = os.environ.get("PSH_LOG_FILE")
        if env_log_file:
            log["file"] = env_log_file
        env_log_level = os.environ.get("PSH_LOG_LEVEL")
        if env_log_level:
            log["level"] = env_log_level
        if log:
            config_data["logging"] = log

        try:
            return cls.model_validate(config_data)
        except ValidationError as exc:
            raise ConfigError(str(path), str(exc)) from exc
