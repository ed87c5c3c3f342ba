"""Input resolver — merge template variables from env, query, JSON and pairs.

Sources are applied in ascending precedence, each overwriting earlier keys:

    environment -> query string(s) -> JSON source(s) -> key=value pair(s)

All four kinds may be combined, and every kind but the environment may be
given more than once.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable
from urllib.parse import parse_qsl

from twigc.errors import ConfigurationError, UsageError
from twigc.models import STDIN, InputSources, ProcessContext

logger = logging.getLogger(__name__)

# Twig identifier grammar; its \x7f-\xff byte range admits any non-ASCII
# code point once decoded.
_NAME_RE = re.compile(r"[A-Za-z_\x7f-\U0010ffff][A-Za-z0-9_\x7f-\U0010ffff]*")
_BRACKET_RE = re.compile(r"\[([^\]]*)\]")


def resolve_inputs(
    sources: InputSources,
    template: str,
    context: ProcessContext,
) -> dict[str, Any]:
    """Build the variable mapping for one render from all requested sources."""
    data: dict[str, Any] = {}

    if sources.env:
        if context.environ is None:
            raise ConfigurationError(
                "process environment is not available to use option 'env'"
            )
        logger.debug("Merging %d environment variable(s)", len(context.environ))
        data.update(context.environ)

    for query in sources.queries:
        data.update(parse_query(query))

    for source in sources.json:
        data.update(load_json(source, template == STDIN, context))

    data.update(parse_pairs(sources.pairs))

    validate_names(data)
    logger.debug("Resolved %d input variable(s)", len(data))
    return data


# ---------------------------------------------------------------------------
# Query strings
# ---------------------------------------------------------------------------

def parse_query(query: str) -> dict[str, Any]:
    """Parse a URL query string into nested variables.

    A single leading ``?`` is ignored, ``&`` and ``;`` both separate fields,
    and bracketed keys (``a[]=1``, ``a[k]=v``) build nested lists/dicts.
    """
    if query.startswith("?"):
        query = query[1:]

    data: dict[str, Any] = {}
    for raw_key, value in parse_qsl(query.replace(";", "&"), keep_blank_values=True):
        _assign(data, raw_key, value)
    return {key: _listify(value) for key, value in data.items()}


def _assign(data: dict, raw_key: str, value: str) -> None:
    head, sep, rest = raw_key.partition("[")
    path = _BRACKET_RE.findall(sep + rest) if head else []
    if not path:
        data[raw_key] = value
        return

    node = data
    key: Any = head
    for part in path:
        child = node.get(key)
        if not isinstance(child, dict):
            child = node[key] = {}
        node = child
        key = _nested_key(node, part)
    node[key] = value


def _nested_key(node: dict, part: str) -> Any:
    if part == "":
        return max((k for k in node if isinstance(k, int)), default=-1) + 1
    if part.isdigit() and str(int(part)) == part:
        return int(part)
    return part


def _listify(value: Any) -> Any:
    """Turn dicts keyed 0..n-1 (from ``a[]=`` fields) into lists."""
    if not isinstance(value, dict):
        return value
    value = {k: _listify(v) for k, v in value.items()}
    if list(value) == list(range(len(value))):
        return list(value.values())
    return value


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def load_json(source: str, template_from_stdin: bool, context: ProcessContext) -> dict[str, Any]:
    """Load a JSON object from stdin (``-``), a literal string, or a file."""
    if source == STDIN and template_from_stdin:
        raise UsageError("Can not read both template and JSON input from stdin")

    try:
        payload = _read_json_source(source, context)
    except UnicodeDecodeError as exc:
        raise UsageError(f"Invalid JSON input: {exc}") from exc

    # Empty input is allowed and contributes nothing
    if not payload.strip():
        return {}

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise UsageError(f"Invalid JSON input: {exc}") from exc

    if not isinstance(data, dict):
        raise UsageError("JSON input must be a dictionary")
    return data


def _read_json_source(source: str, context: ProcessContext) -> str:
    if source == STDIN:
        logger.debug("Reading JSON input from stdin")
        return context.read_stdin()
    if not source.strip() or source.lstrip().startswith("{"):
        return source

    path = Path(source)
    if not path.exists() or path.is_dir():
        raise UsageError(f"Missing or invalid JSON file: {source}")
    logger.debug("Reading JSON input from %s", path)
    return path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# key=value pairs
# ---------------------------------------------------------------------------

def parse_pairs(pairs: Iterable[str]) -> dict[str, str]:
    data: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise UsageError(f"Illegal key=value pair: {pair}")
        data[key] = value
    return data


def validate_names(data: dict[str, Any]) -> None:
    for key in data:
        if not isinstance(key, str) or not _NAME_RE.fullmatch(key):
            raise UsageError(f"Illegal variable name: {key}")
