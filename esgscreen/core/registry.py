"""Stage registry for the screening runtime."""
from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Sequence

from .stage import StageCallable, StageDefinition

# Canonical execution order; stages outside this list run afterwards in
# registration order.
PIPELINE_ORDER: Sequence[str] = ("load", "screen", "export")


class StageRegistry:
    """Keeps track of the available pipeline stages."""

    def __init__(self, order: Sequence[str] = PIPELINE_ORDER) -> None:
        self._stages: Dict[str, StageDefinition] = {}
        self._order = tuple(order)

    def register(self, name: str, func: StageCallable, description: str = "") -> StageCallable:
        """Register *func* as stage *name* and return it for decorator usage."""

        if name in self._stages:
            raise ValueError(f"Stage '{name}' is already registered")
        self._stages[name] = StageDefinition(
            name=name,
            callable=func,
            description=description,
            module=func.__module__,
        )
        return func

    def get(self, name: str) -> StageDefinition:
        try:
            return self._stages[name]
        except KeyError as exc:
            raise KeyError(f"Stage '{name}' is not registered") from exc

    def __contains__(self, name: str) -> bool:
        return name in self._stages

    def __iter__(self) -> Iterator[StageDefinition]:
        return iter(self.items())

    def names(self) -> List[str]:
        """Return registered stage names in pipeline order."""

        known = [name for name in self._order if name in self._stages]
        extra = [name for name in self._stages if name not in self._order]
        return known + extra

    def items(self) -> List[StageDefinition]:
        return [self._stages[name] for name in self.names()]

    def clear(self) -> None:
        self._stages.clear()


registry = StageRegistry()


def register_stage(name: str, description: str = "") -> Callable[[StageCallable], StageCallable]:
    """Decorator registering the wrapped function as a stage."""

    def decorator(func: StageCallable) -> StageCallable:
        return registry.register(name, func, description=description)

    return decorator
