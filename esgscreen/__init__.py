"""esgscreen - ESG portfolio screening against versioned criteria sets."""
from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

from esgscreen.core import StageContext, StageRunner, registry
from esgscreen.core.utils import pipeline_version
from esgscreen.settings import Settings

__all__ = [
    "__version__",
    "StageContext",
    "StageRunner",
    "Settings",
    "registry",
    "bootstrap",
    "create_default_context",
]


def __getattr__(name: str):  # pragma: no cover - passthrough to package metadata
    if name == "__version__":
        return pipeline_version()
    raise AttributeError(name)


def bootstrap() -> None:
    """Register the load, screen and export stages."""

    from esgscreen import catalog, export, screening  # noqa: F401


def create_default_context(
    settings: Settings | None = None, *, as_of: Optional[date] = None
) -> StageContext:
    """Build the context for a command-line run.

    *as_of* replaces the run's calendar date as the parameter value cutoff.
    """

    settings = settings or Settings.load()
    settings.ensure_directories()
    timestamp = datetime.now(timezone.utc)
    return StageContext(
        settings=settings,
        run_id=timestamp.strftime("%Y%m%d%H%M%S"),
        timestamp=timestamp,
        workspace=Path.cwd(),
        as_of=as_of,
    )
