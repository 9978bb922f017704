"""Simulation engine interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from rtheter_sim.events import SimEvent
from rtheter_sim.model import SimulationConfig, SimulationResult

ProgressCallback = Callable[[int, int], None]
LogCallback = Callable[[str], None]


class ISimEngine(ABC):
    """Engine contract: build from a config, run to a result or stop."""

    @abstractmethod
    def build(self, config: SimulationConfig) -> None:
        """Build internal runtime state from a config with an explicit task list."""

    @abstractmethod
    def run(
        self,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[LogCallback] = None,
    ) -> Optional[SimulationResult]:
        """Run to completion; return ``None`` when stopped before the end."""

    @abstractmethod
    def stop(self) -> None:
        """Request a stop at the next slot boundary."""

    @abstractmethod
    def reset(self) -> None:
        """Reset engine state."""

    @abstractmethod
    def subscribe(self, handler: Callable[[SimEvent], None]) -> None:
        """Subscribe event handler."""
