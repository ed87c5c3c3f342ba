"""Render orchestration — pick a loader, configure Jinja2, render once."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Iterator, Optional

from jinja2 import (
    BaseLoader,
    ChainableUndefined,
    DictLoader,
    Environment,
    FileSystemBytecodeCache,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
)
from markupsafe import Markup

from twigc.errors import RenderError
from twigc.escaping import get_escaper, make_finalizer
from twigc.models import STDIN, ProcessContext, RenderRequest

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def staged_template(source: str, prefix: str = "twigc") -> Iterator[Path]:
    """Write a stdin template to ``<tmp>/.<prefix>.<pid>.<id>/-`` for the block.

    The file and then its directory are removed when the block exits, on
    success or failure.
    """
    directory = Path(tempfile.gettempdir()) / f".{prefix}.{os.getpid()}.{uuid.uuid4().hex}"
    directory.mkdir(mode=0o700)
    path = directory / STDIN
    try:
        path.write_text(source, encoding="utf-8")
        logger.debug("Staged stdin template at %s", path)
        yield path
    finally:
        path.unlink(missing_ok=True)
        directory.rmdir()


def build_environment(loader: BaseLoader, request: RenderRequest) -> Environment:
    """Configure a Jinja2 environment the way twigc renders templates."""
    try:
        finalize = make_finalizer(request.escape)
    except ValueError as exc:
        raise RenderError(str(exc)) from exc

    env = Environment(
        loader=loader,
        autoescape=False,
        finalize=finalize,
        # Non-strict lookups on a missing value (user.name) also render empty
        undefined=StrictUndefined if request.strict else ChainableUndefined,
        # Twig drops the first newline after a block tag
        trim_blocks=True,
        bytecode_cache=FileSystemBytecodeCache(request.cache) if request.cache else None,
    )
    env.filters["raw"] = _raw
    env.filters["escape"] = env.filters["e"] = _escape
    return env


def _raw(value: Any) -> Markup:
    if value is None:
        return Markup("")
    return Markup(value)


def _escape(value: Any, strategy: Optional[str] = None) -> Markup:
    """``escape``/``e`` filter; defaults to html whatever the autoescape strategy."""
    if value is None:
        return Markup("")
    if isinstance(value, Markup):
        return value
    return Markup(get_escaper(strategy or "html")(value))


def render(
    request: RenderRequest,
    variables: dict[str, Any],
    context: ProcessContext,
) -> str:
    """Render the requested template and return it without trailing newlines."""
    if not request.from_stdin:
        dirs = [os.path.dirname(request.template) or ".", *request.dirs]
        logger.debug("Loading %s from %s", request.template, dirs)
        return _render(FileSystemLoader(dirs), os.path.basename(request.template),
                       request, variables)

    try:
        source = context.read_stdin()
    except UnicodeDecodeError as exc:
        raise RenderError(f"Invalid template input: {exc}") from exc

    # Includes need a file-system loader, so the template goes to disk
    if request.dirs:
        with staged_template(source) as path:
            loader = FileSystemLoader([str(path.parent), *request.dirs])
            return _render(loader, path.name, request, variables)

    return _render(DictLoader({STDIN: source}), STDIN, request, variables)


def _render(loader: BaseLoader, name: str, request: RenderRequest, variables: dict[str, Any]) -> str:
    env = build_environment(loader, request)
    try:
        output = env.get_template(name).render(variables)
    except TemplateNotFound as exc:
        raise RenderError(f'Unable to find template "{exc.name}"') from exc
    except TemplateSyntaxError as exc:
        where = f' in "{exc.name}"' if exc.name else ""
        raise RenderError(f"{exc.message}{where} at line {exc.lineno}") from exc
    except TemplateError as exc:
        raise RenderError(exc.message or type(exc).__name__) from exc
    except Exception as exc:
        # Runtime failures inside expressions (1 / 0, "5" + 1, recursive include)
        raise RenderError(str(exc) or type(exc).__name__) from exc
    return output.rstrip("\r\n")
