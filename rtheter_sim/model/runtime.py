"""Runtime types shared across the slot engine, policies and aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .spec import Affinity, ProcessorType


@dataclass(frozen=True, slots=True)
class ProcessorUnit:
    """One concrete processor expanded from a hardware pool."""

    processor_id: int
    type: ProcessorType
    preemptive: bool
    pool_index: int


@dataclass(slots=True)
class ReadyUnit:
    """Policy-facing view of a node or segment that may run now."""

    job_id: str
    task_index: int
    unit_index: int
    unit_id: str
    affinity: Affinity
    remaining_slots: int
    release_time: float
    absolute_deadline: Optional[float]
    task_period: Optional[float]

    @property
    def key(self) -> str:
        return f"{self.job_id}:{self.unit_id}"


@dataclass(frozen=True, slots=True)
class SegmentAssignment:
    """Contiguous execution of one unit on one processor."""

    unit_index: int
    processor_id: int
    processor_type: ProcessorType
    start: float
    end: float

    @property
    def duration(self) -> float:
        return max(0.0, self.end - self.start)


@dataclass(slots=True)
class JobCompletion:
    """Completion record of one job consumed by the result aggregator.

    ``deadline`` is relative to ``release_time``.
    """

    task_id: int
    release_time: float
    deadline: Optional[float]
    completion_time: float
    assignments: list[SegmentAssignment] = field(default_factory=list)
    job_index: int = 0

    @property
    def response_time(self) -> float:
        return self.completion_time - self.release_time
