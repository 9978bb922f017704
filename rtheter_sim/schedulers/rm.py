"""Rate-monotonic dispatch."""

from __future__ import annotations

from rtheter_sim.model import ReadyUnit

from .base import PriorityPolicy


class RMPolicy(PriorityPolicy):
    """Fixed priority derived from task period."""

    def priority_key(self, unit: ReadyUnit, now: float) -> tuple:  # noqa: ARG002
        period = unit.task_period if unit.task_period is not None else float("inf")
        deadline = unit.absolute_deadline if unit.absolute_deadline is not None else float("inf")
        return (period, deadline, *self.tie_break_key(unit))
