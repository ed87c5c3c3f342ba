"""CLI entry point: twigc [options] [template]"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, TextIO

from twigc.errors import TwigcError, UsageError
from twigc.models import STDIN, InputSources, ProcessContext, RenderRequest

NAME = "twigc"
VERSION = "0.3.0"
BUILD_DATE = "%BUILD_DATE%"  # Replaced by twigc.packager

logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """Argparse failures become usage errors (exit 1, not 2)."""

    def error(self, message: str):
        raise UsageError(message)


def _existing_dir(value: str) -> str:
    if not os.path.isdir(value):
        raise argparse.ArgumentTypeError(f"Illegal search directory: {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=NAME,
        description="Render a Twig-style template to standard output",
        add_help=False,
    )
    parser.add_argument("template", nargs="?", default=None,
                        help="Template file to render (use `-` for stdin)")
    parser.add_argument("-h", "--help", action="store_true",
                        help="Display this usage help and exit")
    parser.add_argument("-V", "--version", action="store_true",
                        help="Display version information and exit")
    parser.add_argument("--credits", action="store_true",
                        help="Display dependency information and exit")
    parser.add_argument("--cache", metavar="dir", type=_existing_dir, default=None,
                        help="Enable caching to specified directory")
    parser.add_argument("-d", "--dir", metavar="dir", type=_existing_dir, action="append",
                        default=[], dest="dirs",
                        help="Add specified search directory to loader")
    parser.add_argument("-e", "--escape", metavar="strategy", default=None,
                        help="Specify default auto-escaping strategy")
    parser.add_argument("-E", "--env", action="store_true",
                        help="Derive input data from environment")
    parser.add_argument("-j", "--json", metavar="dict/file", action="append", default=[],
                        help="Derive input data from specified JSON file or dictionary string")
    parser.add_argument("-p", "--pair", metavar="input", action="append", default=[],
                        dest="pairs",
                        help="Derive input data from specified key=value pair")
    parser.add_argument("--query", metavar="input", action="append", default=[],
                        dest="queries",
                        help="Derive input data from specified URL query string")
    parser.add_argument("-s", "--strict", action="store_true",
                        help="Throw exception when undefined variable is referenced")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    return parser


def cmd_help(parser: argparse.ArgumentParser, out: TextIO, message: Optional[str] = None) -> None:
    if message:
        print(f"{NAME}: {message.rstrip()}\n", file=out)
    print(parser.format_help().rstrip("\r\n"), file=out)


def cmd_version(out: TextIO) -> None:
    version = f"{NAME} version {VERSION}"
    if "%" not in BUILD_DATE:
        version += f" (built {BUILD_DATE})"
    print(version, file=out)


def cmd_credits(out: TextIO) -> None:
    from rich.console import Console
    from rich.table import Table
    from twigc.credits import get_packages

    table = Table(box=None, show_edge=False, pad_edge=False, header_style="bold")
    table.add_column("name")
    table.add_column("version")
    table.add_column("licence")
    for package in get_packages():
        table.add_row(package.name, package.version, package.license_label)

    Console(file=out, highlight=False).print(table)


def cmd_render(args: argparse.Namespace, context: ProcessContext, out: TextIO) -> None:
    # Lazy import so --help/--version don't pull in Jinja2
    from twigc.escaping import select_strategy
    from twigc.inputs import resolve_inputs
    from twigc.template_engine import render

    template = args.template
    sources = InputSources(
        env=args.env,
        queries=args.queries,
        json=args.json,
        pairs=args.pairs,
    )
    variables = resolve_inputs(sources, template, context)

    request = RenderRequest(
        template=template,
        dirs=list(args.dirs),
        cache=args.cache,
        strict=args.strict,
        escape=select_strategy(args.escape, template),
    )
    logger.debug("Rendering %s (escape=%r, strict=%s)", template, request.escape, request.strict)

    print(render(request, variables, context), file=out)


def main(
    argv: Optional[list[str]] = None,
    context: Optional[ProcessContext] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Run twigc and return the process exit status."""
    out = stdout or sys.stdout
    err = stderr or sys.stderr
    parser = build_parser()

    try:
        args = parser.parse_args(argv)

        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
            stream=err,
        )

        if args.help:
            cmd_help(parser, out)
            return 0
        if args.version:
            cmd_version(out)
            return 0
        if args.credits:
            cmd_credits(out)
            return 0

        context = context or ProcessContext.from_process()

        # Piped input with no template argument is the template
        if args.template is None and not context.stdin_is_tty:
            args.template = STDIN
        if args.template is None:
            cmd_help(parser, out, "No template specified")
            return 1

        cmd_render(args, context, out)
    except (TwigcError, OSError) as e:
        print(f"{NAME}: {str(e).rstrip()}", file=err)
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
