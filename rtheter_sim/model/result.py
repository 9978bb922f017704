"""Simulation result schema and its derived fields."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

TOLERANCE = 1e-9


def _model_config() -> ConfigDict:
    return ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class DeadlineMiss(BaseModel):
    model_config = _model_config()

    task_id: int
    deadline: float
    response_time: float

    @model_validator(mode="after")
    def validate_miss(self) -> "DeadlineMiss":
        if not self.response_time > self.deadline:
            raise ValueError(
                f"deadline miss of task {self.task_id} requires responseTime > deadline "
                f"({self.response_time} <= {self.deadline})"
            )
        return self


class TaskResponseStats(BaseModel):
    """Response-time statistics of one task.

    ``valid`` is false when the task has no completed job; the numeric
    fields are then zero and carry no meaning.
    """

    model_config = _model_config()

    task_id: int
    count: int = Field(ge=0)
    mean: float = 0.0
    std_dev: float = 0.0
    q1: float = 0.0
    median: float = 0.0
    q3: float = 0.0
    min: float = 0.0
    max: float = 0.0
    range: float = 0.0
    valid: bool = True

    @model_validator(mode="after")
    def validate_order(self) -> "TaskResponseStats":
        if self.valid != (self.count > 0):
            raise ValueError(f"task {self.task_id} stats valid flag disagrees with count={self.count}")
        if not self.valid:
            return self
        ordered = [self.min, self.q1, self.median, self.q3, self.max]
        for lhs, rhs in zip(ordered, ordered[1:]):
            if lhs > rhs + TOLERANCE:
                raise ValueError(f"task {self.task_id} stats violate min <= q1 <= median <= q3 <= max")
        if self.std_dev < 0:
            raise ValueError(f"task {self.task_id} stdDev must be >= 0")
        if abs(self.range - (self.max - self.min)) > TOLERANCE:
            raise ValueError(f"task {self.task_id} range must equal max - min")
        return self


class ProcessorTimelineEvent(BaseModel):
    model_config = _model_config()

    processor_id: int
    time_slot: int
    task_id: int
    segment_id: int


class SimulationResult(BaseModel):
    """Immutable outcome of a completed run."""

    model_config = _model_config()

    has_deadline_miss: bool
    deadline_misses: list[DeadlineMiss] = Field(default_factory=list)
    average_response_time: float = 0.0
    worst_response_time: float = 0.0
    utilization: dict[str, float] = Field(default_factory=dict)
    task_response_stats: list[TaskResponseStats] = Field(default_factory=list)
    processor_timeline: list[list[ProcessorTimelineEvent]] = Field(default_factory=list)
    trace: list[dict[str, Any]] = Field(default_factory=list)
    is_schedulable: bool
    infeasibility: list[str] = Field(default_factory=list)
    horizon: float = 0.0

    @model_validator(mode="after")
    def validate_derived(self) -> "SimulationResult":
        if self.has_deadline_miss != bool(self.deadline_misses):
            raise ValueError("hasDeadlineMiss must be true iff deadlineMisses is non-empty")
        if self.is_schedulable != (not self.has_deadline_miss and not self.infeasibility):
            raise ValueError("isSchedulable must be true iff no deadline miss and no infeasibility")
        for stats in self.task_response_stats:
            if stats.valid and stats.max > self.worst_response_time + TOLERANCE:
                raise ValueError(
                    f"worstResponseTime {self.worst_response_time} is below task {stats.task_id} max {stats.max}"
                )
        for processor_type, value in self.utilization.items():
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"utilization of {processor_type} must lie in [0, 100], got {value}")
        for processor_id, events in enumerate(self.processor_timeline):
            slots = [event.time_slot for event in events]
            if slots != sorted(slots):
                raise ValueError(f"timeline of processor {processor_id} is not ordered by time slot")
        return self

    @classmethod
    def assemble(
        cls,
        *,
        response_times: Iterable[float],
        deadline_misses: list[DeadlineMiss],
        utilization: dict[str, float],
        task_response_stats: list[TaskResponseStats],
        processor_timeline: list[list[ProcessorTimelineEvent]],
        trace: list[dict[str, Any]],
        infeasibility: list[str],
        horizon: float,
    ) -> "SimulationResult":
        """Build a result, computing every derived field exactly once.

        ``average_response_time`` is the global mean over all completed jobs,
        not the mean of per-task means.
        """
        samples = list(response_times)
        average = sum(samples) / len(samples) if samples else 0.0
        worst = max(samples) if samples else 0.0
        has_miss = bool(deadline_misses)
        return cls(
            has_deadline_miss=has_miss,
            deadline_misses=list(deadline_misses),
            average_response_time=average,
            worst_response_time=worst,
            utilization=dict(utilization),
            task_response_stats=list(task_response_stats),
            processor_timeline=[list(events) for events in processor_timeline],
            trace=list(trace),
            is_schedulable=not has_miss and not infeasibility,
            infeasibility=list(infeasibility),
            horizon=horizon,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
