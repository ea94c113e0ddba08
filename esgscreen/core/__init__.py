"""Core orchestration utilities for the screening runtime."""
from __future__ import annotations

from .registry import StageRegistry, register_stage, registry
from .runner import StageRunner
from .stage import StageContext, StageDefinition

__all__ = [
    "StageRegistry",
    "StageRunner",
    "StageContext",
    "StageDefinition",
    "register_stage",
    "registry",
]
