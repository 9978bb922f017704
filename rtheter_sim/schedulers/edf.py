"""Earliest deadline first dispatch."""

from __future__ import annotations

from rtheter_sim.model import ReadyUnit

from .base import PriorityPolicy


class EDFPolicy(PriorityPolicy):
    """Global EDF on ready units."""

    def priority_key(self, unit: ReadyUnit, now: float) -> tuple:  # noqa: ARG002
        deadline = unit.absolute_deadline if unit.absolute_deadline is not None else float("inf")
        return (deadline, *self.tie_break_key(unit))
