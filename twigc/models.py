"""Data models shared by the input resolver, renderer and CLI."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Mapping, Optional, TextIO, Union

STDIN = "-"

# False disables escaping; any string names a registered escaper.
EscapeStrategy = Union[str, bool]


@dataclass
class ProcessContext:
    """Process state handed explicitly to the resolver and renderer."""

    environ: Optional[Mapping[str, str]] = None  # None = not exposed
    stdin: TextIO = field(default_factory=lambda: sys.stdin)
    stdin_is_tty: bool = False

    @classmethod
    def from_process(cls) -> "ProcessContext":
        try:
            is_tty = sys.stdin.isatty()
        except (AttributeError, ValueError):
            is_tty = False
        return cls(environ=os.environ, stdin=sys.stdin, stdin_is_tty=is_tty)

    def read_stdin(self) -> str:
        return self.stdin.read()


@dataclass
class InputSources:
    """Variable sources requested on the command line, in the order given."""

    env: bool = False
    queries: list[str] = field(default_factory=list)
    json: list[str] = field(default_factory=list)
    pairs: list[str] = field(default_factory=list)


@dataclass
class RenderRequest:
    """Everything the renderer needs besides the variables."""

    template: str = STDIN  # path, or "-" for stdin
    dirs: list[str] = field(default_factory=list)
    cache: Optional[str] = None  # bytecode cache directory
    strict: bool = False
    escape: EscapeStrategy = False

    @property
    def from_stdin(self) -> bool:
        return self.template == STDIN


@dataclass(frozen=True)
class Package:
    """One installed distribution, as listed by --credits."""

    name: str
    version: str
    licenses: tuple[str, ...] = ()

    @property
    def license_label(self) -> str:
        return ", ".join(self.licenses) or "?"
