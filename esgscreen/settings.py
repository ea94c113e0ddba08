"""Environment-driven configuration for the ESG screening runtime."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    data_dir: Path
    output_dir: Path
    sqlite_path: Path
    criteria_config: Path
    weight_tolerance: float
    log_level: str

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment variables with sensible defaults."""

        data_dir = Path(os.getenv("ESGSCREEN_DATA_DIR", "data"))
        output_dir = Path(os.getenv("ESGSCREEN_OUTPUT_DIR", "artifacts"))
        sqlite_path = Path(os.getenv("ESGSCREEN_DB_PATH", "esgscreen.sqlite"))
        criteria_config = Path(
            os.getenv("ESGSCREEN_CRITERIA_CONFIG", "config/criteria_sets.yaml")
        )
        weight_tolerance = float(os.getenv("ESGSCREEN_WEIGHT_TOLERANCE", "0.01"))
        log_level = os.getenv("LOG_LEVEL", "INFO")
        return cls(
            data_dir=data_dir,
            output_dir=output_dir,
            sqlite_path=sqlite_path,
            criteria_config=criteria_config,
            weight_tolerance=weight_tolerance,
            log_level=log_level,
        )

    @property
    def import_dir(self) -> Path:
        """Directory scanned for parameter value CSV files."""

        return self.data_dir / "imports"

    def ensure_directories(self) -> None:
        """Create directories required for the runtime to operate."""

        for path in {self.data_dir, self.output_dir, self.sqlite_path.parent}:
            if not path.exists():
                path.mkdir(parents=True, exist_ok=True)
