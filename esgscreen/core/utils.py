"""Miscellaneous helpers for the screening runtime."""
from __future__ import annotations

import uuid
from importlib import metadata

__all__ = ["new_identifier", "pipeline_version"]


def pipeline_version() -> str:
    """Return the installed package version or a sensible default."""

    try:
        return metadata.version("esgscreen")
    except metadata.PackageNotFoundError:  # pragma: no cover - fallback path
        return "0.0.0"


def new_identifier() -> str:
    return uuid.uuid4().hex
