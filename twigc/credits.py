"""Dependency credits — installed runtime distributions and their licences."""

from __future__ import annotations

import logging
from importlib import metadata
from typing import Iterable, Optional

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from twigc.errors import CreditsError
from twigc.models import Package

logger = logging.getLogger(__name__)

DISTRIBUTION = "twigc"

_LICENSE_CLASSIFIER = "License :: "


def get_packages(root: str = DISTRIBUTION) -> list[Package]:
    """Return the runtime dependency closure of ``root``, sorted by name."""
    return sorted(
        (_to_package(dist) for dist in dependency_closure(root)),
        key=lambda p: p.name.lower(),
    )


def dependency_closure(root: str = DISTRIBUTION) -> list[metadata.Distribution]:
    """Walk the non-optional requirements of ``root`` (not including it)."""
    try:
        start = metadata.distribution(root)
    except metadata.PackageNotFoundError as exc:
        raise CreditsError(f"Missing package metadata for {root}") from exc

    seen: dict[str, metadata.Distribution] = {}
    pending = list(runtime_requirements(start))
    while pending:
        name = canonicalize_name(pending.pop())
        if name in seen or name == canonicalize_name(root):
            continue
        try:
            dist = metadata.distribution(name)
        except metadata.PackageNotFoundError:
            logger.debug("Requirement %s is not installed; skipping", name)
            continue
        seen[name] = dist
        pending.extend(runtime_requirements(dist))
    return list(seen.values())


def runtime_requirements(dist: metadata.Distribution) -> Iterable[str]:
    """Names of requirements whose environment marker holds here without extras."""
    for line in dist.requires or []:
        try:
            req = Requirement(line)
        except InvalidRequirement:
            logger.debug("Skipping unparsable requirement %r of %s", line, dist.metadata["Name"])
            continue
        if req.marker is not None and not req.marker.evaluate({"extra": ""}):
            continue
        yield req.name


def _to_package(dist: metadata.Distribution) -> Package:
    meta = dist.metadata
    return Package(
        name=meta["Name"],
        version=(dist.version or "").lstrip("v"),
        licenses=_licenses(meta),
    )


def _licenses(meta) -> tuple[str, ...]:
    expression: Optional[str] = meta.get("License-Expression")
    if expression:
        return (expression.strip(),)

    classifiers = [
        c.rpartition(" :: ")[2]
        for c in meta.get_all("Classifier") or []
        if c.startswith(_LICENSE_CLASSIFIER)
    ]
    if classifiers:
        return tuple(classifiers)

    # Some projects put the whole licence text in this field
    license_field = (meta.get("License") or "").strip()
    if license_field and "\n" not in license_field and license_field.upper() != "UNKNOWN":
        return (license_field,)
    return ()
