"""Stage primitives for the screening runtime."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Protocol

from esgscreen.settings import Settings


class StageCallable(Protocol):
    """Callable protocol for a pipeline stage."""

    def __call__(self, context: "StageContext") -> None:
        """Execute the stage logic."""


@dataclass(slots=True)
class StageContext:
    """Context object passed to every stage run."""

    settings: Settings
    run_id: str
    timestamp: datetime
    workspace: Path
    as_of: Optional[date] = None

    @property
    def run_date(self) -> date:
        """Parameter value cutoff: *as_of* when given, else the run's calendar date."""

        return self.as_of or self.timestamp.date()


@dataclass(slots=True, frozen=True)
class StageDefinition:
    """Metadata about a registered stage."""

    name: str
    callable: StageCallable
    description: str
    module: str
