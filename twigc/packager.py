"""Build twigc into a single executable zip application (.pyz).

Usage: python -m twigc.packager [-o twigc.pyz] [--no-vendor] [-v]
"""

from __future__ import annotations

import argparse
import logging
import sys
import tempfile
import zipapp
from datetime import datetime, timezone
from importlib import metadata
from pathlib import Path

from twigc.credits import DISTRIBUTION, dependency_closure

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
BUILD_DATE_PLACEHOLDER = "%BUILD_DATE%"
INTERPRETER = "/usr/bin/env python3"

_MAIN = "from twigc.__main__ import run\n\nrun()\n"

# Path parts that never belong in the archive
_EXCLUDED_PARTS = {"__pycache__", "test", "tests", "doc", "docs", "bin"}
_EXCLUDED_SUFFIXES = {".pyc", ".c", ".h", ".pyx", ".pxd"}


def build_archive(output: Path, vendor: bool = True) -> Path:
    """Assemble the package (and optionally its dependencies) into ``output``."""
    output = Path(output)
    if output.exists():
        output.unlink()

    with tempfile.TemporaryDirectory(prefix="twigc_build_") as tmpdir:
        staging = Path(tmpdir)

        logger.info("Adding package files...")
        _add_package(staging)

        if vendor:
            logger.info("Adding vendor files...")
            _add_vendor(staging)

        (staging / "__main__.py").write_text(_MAIN)
        zipapp.create_archive(staging, output, interpreter=INTERPRETER)

    output.chmod(0o755)
    logger.info("Compiled to %s", output)
    return output


def _add_package(staging: Path) -> None:
    build_date = datetime.now(timezone.utc).strftime("%a %Y-%m-%d %H:%M:%S UTC")
    for src in sorted(PACKAGE_DIR.rglob("*.py")):
        rel = src.relative_to(PACKAGE_DIR.parent)
        if _excluded(rel):
            continue
        content = src.read_text(encoding="utf-8")
        if src.name == "__main__.py":
            content = content.replace(BUILD_DATE_PLACEHOLDER, build_date)
        _write(staging / rel, content.encode("utf-8"))

    # Metadata keeps --credits working from inside the archive
    for file in metadata.distribution(DISTRIBUTION).files or []:
        if file.parts and file.parts[0].endswith(".dist-info"):
            _write(staging / file, Path(file.locate()).read_bytes())


def _add_vendor(staging: Path) -> None:
    for dist in dependency_closure():
        for file in dist.files or []:
            if _excluded(Path(file)):
                continue
            src = Path(dist.locate_file(file))
            if not src.is_file():
                continue
            _write(staging / file, src.read_bytes())


def _excluded(rel: Path) -> bool:
    if rel.is_absolute() or ".." in rel.parts:
        return True
    if _EXCLUDED_PARTS.intersection(rel.parts):
        return True
    return rel.suffix in _EXCLUDED_SUFFIXES


def _write(dest: Path, data: bytes) -> None:
    logger.debug("Adding file: %s", dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="twigc-build",
        description="Compile twigc into an executable zip application",
    )
    parser.add_argument("-o", "--output", default="twigc.pyz", help="Archive path (default: twigc.pyz)")
    parser.add_argument("--no-vendor", action="store_true",
                        help="Do not bundle installed dependencies")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    try:
        build_archive(Path(args.output), vendor=not args.no_vendor)
    except Exception as e:
        print(f"twigc-build: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
