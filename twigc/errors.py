"""Exception types reported by the CLI as ``twigc: <message>``."""

from __future__ import annotations


class TwigcError(Exception):
    """Base class for errors that end an invocation with exit status 1."""


class UsageError(TwigcError):
    """Bad or conflicting arguments, malformed input data, illegal names."""


class ConfigurationError(TwigcError):
    """The runtime cannot provide something an option depends on."""


class RenderError(TwigcError):
    """The template engine failed to load or render the template."""


class CreditsError(TwigcError):
    """Installed-distribution metadata is missing or unreadable."""
