"""Fold job completions into a SimulationResult."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from rtheter_sim.events import EventType, SimEvent
from rtheter_sim.model import (
    DeadlineMiss,
    HardwareConfig,
    JobCompletion,
    ProcessorTimelineEvent,
    ProcessorType,
    SegmentAssignment,
    SimulationResult,
)

from .base import IMetric
from .stats import summarize


class ResultAggregator(IMetric):
    """Aggregate response times, misses and utilization.

    Completions arrive either directly through :meth:`add_completion` or as
    ``JobComplete`` events on the bus.
    """

    def __init__(self, hardware: HardwareConfig) -> None:
        self._hardware = hardware
        self.reset()

    def reset(self) -> None:
        self._task_ids: list[int] = []
        self._completions: list[JobCompletion] = []
        self._busy: dict[ProcessorType, float] = defaultdict(float)
        self._infeasibility: list[str] = []
        self._max_time = 0.0

    def register_task(self, task_id: int) -> None:
        if task_id not in self._task_ids:
            self._task_ids.append(task_id)

    def add_completion(self, record: JobCompletion) -> None:
        self.register_task(record.task_id)
        self._completions.append(record)
        self._max_time = max(self._max_time, record.completion_time)
        self.add_busy(record.assignments)

    def add_busy(self, assignments: list[SegmentAssignment]) -> None:
        """Account execution that ran, whether or not its job completed."""
        for assignment in assignments:
            self._busy[assignment.processor_type] += assignment.duration

    def add_infeasibility(self, reason: str) -> None:
        if reason not in self._infeasibility:
            self._infeasibility.append(reason)

    def consume(self, event: SimEvent) -> None:
        self._max_time = max(self._max_time, event.time)
        if event.type == EventType.JOB_RELEASED and event.task_id is not None:
            self.register_task(event.task_id)
        elif event.type == EventType.JOB_COMPLETE and event.task_id is not None:
            self.add_completion(self._completion_from_event(event))
        elif event.type == EventType.INFEASIBLE:
            self.add_infeasibility(str(event.payload.get("reason", "engine reported infeasibility")))

    @staticmethod
    def _completion_from_event(event: SimEvent) -> JobCompletion:
        payload = event.payload
        assignments = [
            SegmentAssignment(
                unit_index=int(row["unit_index"]),
                processor_id=int(row["processor_id"]),
                processor_type=ProcessorType(row["processor_type"]),
                start=float(row["start"]),
                end=float(row["end"]),
            )
            for row in payload.get("assignments", [])
        ]
        deadline = payload.get("deadline")
        return JobCompletion(
            task_id=int(event.task_id or 0),
            release_time=float(payload["release_time"]),
            deadline=float(deadline) if isinstance(deadline, (int, float)) else None,
            completion_time=float(payload.get("completion_time", event.time)),
            assignments=assignments,
            job_index=int(payload.get("job_index", 0)),
        )

    def deadline_misses(self) -> list[DeadlineMiss]:
        misses: list[DeadlineMiss] = []
        for record in sorted(self._completions, key=lambda item: (item.completion_time, item.task_id, item.release_time)):
            if record.deadline is not None and record.response_time > record.deadline:
                misses.append(
                    DeadlineMiss(
                        task_id=record.task_id,
                        deadline=record.deadline,
                        response_time=record.response_time,
                    )
                )
        return misses

    def utilization(self, horizon: float) -> dict[str, float]:
        """Percentage of each processor type's capacity used over ``horizon``."""
        result: dict[str, float] = {}
        for processor_type, capacity in self._hardware.capacity().items():
            denominator = capacity * horizon
            if denominator <= 0:
                result[processor_type.value] = 0.0
                continue
            value = self._busy.get(processor_type, 0.0) / denominator * 100.0
            result[processor_type.value] = min(100.0, max(0.0, value))
        return result

    def build_result(
        self,
        *,
        horizon: float | None = None,
        processor_timeline: list[list[ProcessorTimelineEvent]] | None = None,
        trace: list[dict[str, Any]] | None = None,
    ) -> SimulationResult:
        effective_horizon = self._max_time if horizon is None else horizon
        samples: dict[int, list[tuple[float, float]]] = {task_id: [] for task_id in self._task_ids}
        for record in self._completions:
            samples.setdefault(record.task_id, []).append((record.release_time, record.response_time))

        return SimulationResult.assemble(
            response_times=[record.response_time for record in self._completions],
            deadline_misses=self.deadline_misses(),
            utilization=self.utilization(effective_horizon),
            task_response_stats=[summarize(task_id, samples[task_id]) for task_id in sorted(samples)],
            processor_timeline=processor_timeline or [],
            trace=trace or [],
            infeasibility=self._infeasibility,
            horizon=effective_horizon,
        )

    def report(self) -> dict:
        return self.build_result().to_payload()
