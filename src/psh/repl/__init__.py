"""REPL: parsing, mode state, routing and the input loop."""

from psh.repl.line import run_line
from psh.repl.mode import ModeState
from psh.repl.parser import Parsed, ParsedDefault, ParsedEntry, parse
from psh.repl.router import Router, SessionTable

__all__ = [
    "ModeState",
    "Parsed",
    "ParsedDefault",
    "ParsedEntry",
    "Router",
    "SessionTable",
    "parse",
    "run_line",
]
