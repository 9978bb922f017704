"""Dispatch policy interfaces and the priority-based base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from rtheter_sim.model import ProcessorUnit, ReadyUnit


@dataclass(slots=True)
class SlotSnapshot:
    """What a policy sees at the start of one time slot."""

    now: float
    processors: list[ProcessorUnit]
    ready_units: list[ReadyUnit]
    running: dict[int, ReadyUnit] = field(default_factory=dict)


class IDispatchPolicy(ABC):
    """Policy interface used by the slot engine."""

    @abstractmethod
    def assign(self, snapshot: SlotSnapshot) -> dict[int, ReadyUnit | None]:
        """Map every processor id to the unit it runs in this slot."""


class PriorityPolicy(IDispatchPolicy, ABC):
    """Greedy per-processor dispatch by a sortable priority key.

    Non-preemptive processors keep their running unit until it finishes.
    Preemptive processors re-pick every slot, their current unit included.
    """

    def __init__(self, params: dict | None = None) -> None:
        self._params = dict(params or {})

    @abstractmethod
    def priority_key(self, unit: ReadyUnit, now: float) -> tuple:
        """Return a sortable key. Lower tuple = higher priority."""

    @staticmethod
    def tie_break_key(unit: ReadyUnit) -> tuple:
        return (unit.release_time, unit.task_index, unit.unit_index, unit.job_id)

    def assign(self, snapshot: SlotSnapshot) -> dict[int, ReadyUnit | None]:
        assignments: dict[int, ReadyUnit | None] = {}
        used: set[str] = set()

        # Pinned units first so a preemptive processor cannot steal them.
        for processor in snapshot.processors:
            current = snapshot.running.get(processor.processor_id)
            if current is not None and not processor.preemptive:
                assignments[processor.processor_id] = current
                used.add(current.key)

        for processor in snapshot.processors:
            if processor.processor_id in assignments:
                continue
            current = snapshot.running.get(processor.processor_id)
            candidates = [
                unit
                for unit in snapshot.ready_units
                if unit.key not in used and unit.affinity.accepts(processor.type)
            ]
            if current is not None and current.key not in used:
                candidates.append(current)
            if not candidates:
                assignments[processor.processor_id] = None
                continue
            candidates.sort(key=lambda unit: self.priority_key(unit, snapshot.now))
            chosen = candidates[0]
            assignments[processor.processor_id] = chosen
            used.add(chosen.key)
        return assignments
