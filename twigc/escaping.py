"""Escape strategies — selection from the CLI token and the escaper registry.

Escapers produce the same output as Twig's built-in strategies so templates
render identically under either engine.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any, Callable, Optional
from urllib.parse import quote

from markupsafe import Markup

from twigc.models import EscapeStrategy

Escaper = Callable[[Any], str]

_ESCAPERS: dict[str, Escaper] = {}

# Extension (after stripping a trailing .twig) -> strategy
EXTENSION_STRATEGIES: dict[str, str] = {
    "htm": "html",
    "html": "html",
    "phtml": "html",
    "thtml": "html",
    "xhtml": "html",
    "template": "html",
    "tmpl": "html",
    "tpl": "html",
    "css": "css",
    "scss": "css",
    "js": "js",
    "json": "json",
    "bash": "sh",
    "ksh": "sh",
    "sh": "sh",
    "zsh": "sh",
}

_FALSE_TOKENS = {"f", "n", "none", "never"}
_TRUE_TOKENS = {"t", "y", "always"}

# Remaining boolean spellings
_BOOL_TRUE = {"1", "true", "on", "yes"}
_BOOL_FALSE = {"0", "false", "off", "no", ""}


def select_strategy(token: Optional[str], template: Optional[str] = None) -> EscapeStrategy:
    """Return the escape strategy for a CLI token and template name.

    ``None``/``auto`` infers from the template's extension; boolean-ish
    tokens map to ``"html"`` or ``False``; anything else is returned as a
    strategy name for the renderer to look up.
    """
    token = token.lower() if token is not None else None

    if token is None or token == "auto":
        return EXTENSION_STRATEGIES.get(template_extension(template or ""), False)

    if token in _FALSE_TOKENS:
        return False
    if token in _TRUE_TOKENS:
        return "html"

    stripped = token.strip()
    if stripped in _BOOL_TRUE:
        return "html"
    if stripped in _BOOL_FALSE:
        return False

    return token


def template_extension(template: str) -> str:
    """Lower-cased extension used for inference (``page.html.twig`` -> html)."""
    name = os.path.basename(template)
    if name.endswith(".twig") and "." in name[:-5]:
        name = name[:-5]
    if "." not in name:
        return ""
    return name.rpartition(".")[2].lower()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def register_escaper(name: str, func: Escaper) -> None:
    """Register an escaper under a strategy name (replaces any existing one)."""
    _ESCAPERS[name] = func


def get_escaper(name: str) -> Escaper:
    func = _ESCAPERS.get(name)
    if func is None:
        valid = ", ".join(_ESCAPERS)
        raise ValueError(f'Invalid escaping strategy "{name}" (valid ones: {valid}).')
    return func


def list_escapers() -> list[str]:
    return list(_ESCAPERS)


def make_finalizer(strategy: EscapeStrategy) -> Callable[[Any], Any]:
    """Build a Jinja2 ``finalize`` hook applying ``strategy`` to every output.

    Raises ValueError for an unknown strategy name.
    """
    escaper = get_escaper(strategy) if strategy else None

    def finalize(value: Any) -> Any:
        if value is None:
            return ""
        if escaper is None or isinstance(value, Markup):
            return value
        return escaper(value)

    return finalize


def _text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


# ---------------------------------------------------------------------------
# Escapers
# ---------------------------------------------------------------------------

_HTML_TABLE = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
})

_HTML_ATTR_ENTITIES = {'"': "&quot;", "&": "&amp;", "<": "&lt;", ">": "&gt;"}
_JS_SAFE = re.compile(r"[^a-zA-Z0-9,._]")
_CSS_SAFE = re.compile(r"[^a-zA-Z0-9]")
_HTML_ATTR_SAFE = re.compile(r"[^a-zA-Z0-9,.\-_]")
_SH_SPECIAL = re.compile(r'([$`\\"])')


def escape_html(value: Any) -> str:
    return _text(value).translate(_HTML_TABLE)


def _html_attr_char(match: re.Match) -> str:
    char = match.group(0)
    code = ord(char)
    if (code <= 0x1F and char not in "\t\n\r") or 0x7F <= code <= 0x9F:
        return "&#xFFFD;"
    if char in _HTML_ATTR_ENTITIES:
        return _HTML_ATTR_ENTITIES[char]
    if code < 0x80:
        return f"&#x{code:02X};"
    return f"&#x{code:04X};"


def escape_html_attr(value: Any) -> str:
    return _HTML_ATTR_SAFE.sub(_html_attr_char, _text(value))


def _js_char(match: re.Match) -> str:
    code = ord(match.group(0))
    if code < 0x80:
        return f"\\x{code:02X}"
    if code < 0x10000:
        return f"\\u{code:04X}"
    code -= 0x10000
    return f"\\u{0xD800 | (code >> 10):04X}\\u{0xDC00 | (code & 0x3FF):04X}"


def escape_js(value: Any) -> str:
    return _JS_SAFE.sub(_js_char, _text(value))


def escape_css(value: Any) -> str:
    return _CSS_SAFE.sub(lambda m: f"\\{ord(m.group(0)):X} ", _text(value))


def escape_url(value: Any) -> str:
    return quote(_text(value), safe="-_.~")


def escape_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def escape_sh(value: Any) -> str:
    return '"' + _SH_SPECIAL.sub(r"\\\1", _text(value)) + '"'


register_escaper("html", escape_html)
register_escaper("js", escape_js)
register_escaper("css", escape_css)
register_escaper("html_attr", escape_html_attr)
register_escaper("url", escape_url)
register_escaper("json", escape_json)
register_escaper("sh", escape_sh)
