"""SimPy-backed time-slot engine."""

from __future__ import annotations

from dataclasses import dataclass, field
import heapq
import logging
import math
from typing import Callable, Optional

import simpy

from rtheter_sim.events import EventBus, EventType, SimEvent
from rtheter_sim.metrics import ResultAggregator
from rtheter_sim.model import (
    ProcessorTimelineEvent,
    ProcessorUnit,
    ReadyUnit,
    SegmentAssignment,
    SimulationConfig,
    SimulationResult,
    predecessor_map,
    resolve_timing,
    task_units,
)
from rtheter_sim.model.task import TaskUnit
from rtheter_sim.schedulers import IDispatchPolicy, SlotSnapshot, create_policy

from .interfaces import ISimEngine, LogCallback, ProgressCallback

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UnitRuntime:
    unit: TaskUnit
    predecessors: list[str]
    remaining_slots: int
    done: bool = False
    running_on: Optional[int] = None
    running_since: Optional[int] = None


@dataclass(slots=True)
class JobRuntime:
    job_id: str
    task_index: int
    job_index: int
    release_time: float
    deadline: Optional[float]
    period: Optional[float]
    units: dict[str, UnitRuntime]
    assignments: list[SegmentAssignment] = field(default_factory=list)
    completed: bool = False

    @property
    def absolute_deadline(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.release_time + self.deadline


@dataclass(slots=True)
class TaskRuntime:
    task_index: int
    task_id: str
    units: list[TaskUnit]
    predecessors: dict[str, list[str]]
    period: Optional[float]
    deadline: Optional[float]


def expand_processors(config: SimulationConfig) -> list[ProcessorUnit]:
    """Expand hardware pools into processors with ids in declaration order."""
    units: list[ProcessorUnit] = []
    for pool_index, processor in enumerate(config.hardware.processors):
        for _ in range(max(0, processor.count)):
            units.append(
                ProcessorUnit(
                    processor_id=len(units),
                    type=processor.type,
                    preemptive=processor.preemptive,
                    pool_index=pool_index,
                )
            )
    return units


class SlotEngine(ISimEngine):
    """Discrete-time engine advancing one slot per SimPy timeout.

    Each unit's execution time is rounded up to whole slots. Jobs of a task
    are released every period, ``releaseTimes`` times. The run ends once all
    released jobs completed, or at a slot cap that bounds any work-conserving
    schedule of the released work.
    """

    PROGRESS_STEPS = 100

    def __init__(self, policy: IDispatchPolicy | None = None) -> None:
        self._external_policy = policy
        self._subscribers: list[Callable[[SimEvent], None]] = []
        self.reset()

    def subscribe(self, handler: Callable[[SimEvent], None]) -> None:
        if handler in self._subscribers:
            return
        self._subscribers.append(handler)
        self._event_bus.subscribe(handler)

    def reset(self) -> None:
        self._env = simpy.Environment()
        self._event_bus = EventBus()
        self._events: list[SimEvent] = []
        self._config: SimulationConfig | None = None
        self._policy: IDispatchPolicy | None = None
        self._aggregator: ResultAggregator | None = None
        self._processors: list[ProcessorUnit] = []
        self._tasks: list[TaskRuntime] = []
        self._release_heap: list[tuple[float, int, int]] = []
        self._jobs: list[JobRuntime] = []
        self._running: dict[int, tuple[JobRuntime, UnitRuntime]] = {}
        self._timeline: list[list[ProcessorTimelineEvent]] = []
        self._total_slices = 0
        self._stop_requested = False
        self._stopped = False
        self._on_progress: ProgressCallback | None = None
        self._on_log: LogCallback | None = None
        self._event_bus.subscribe(self._events.append)
        for handler in self._subscribers:
            self._event_bus.subscribe(handler)

    def build(self, config: SimulationConfig) -> None:
        self.reset()
        if not config.taskset.tasks:
            raise ValueError("engine requires an explicit task list, materialize the config first")
        self._config = config
        self._policy = self._external_policy or create_policy(config.scheduler)
        self._aggregator = ResultAggregator(config.hardware)
        self._event_bus.subscribe(self._aggregator.consume)
        self._processors = expand_processors(config)
        self._timeline = [[] for _ in self._processors]

        taskset = config.taskset
        total_work = 0
        last_release = 0.0
        for task_index, task in enumerate(taskset.tasks):
            period, deadline = resolve_timing(task, taskset.period_deadline_rule, taskset.deadline_factor)
            runtime = TaskRuntime(
                task_index=task_index,
                task_id=task.id,
                units=task_units(task),
                predecessors=predecessor_map(task),
                period=period,
                deadline=deadline,
            )
            self._tasks.append(runtime)
            work = sum(self._slots_for(unit) for unit in runtime.units)
            for job_index in range(taskset.release_times):
                release = job_index * (period or 0.0)
                heapq.heappush(self._release_heap, (release, task_index, job_index))
                total_work += work
                last_release = max(last_release, release)
        self._total_slices = (math.ceil(last_release) + total_work) if self._release_heap else 0

    @staticmethod
    def _slots_for(unit: TaskUnit) -> int:
        return max(1, math.ceil(unit.execution_time - 1e-9))

    def stop(self) -> None:
        self._stop_requested = True

    @property
    def events(self) -> list[SimEvent]:
        return list(self._events)

    @property
    def now(self) -> float:
        return float(self._env.now)

    @property
    def total_slices(self) -> int:
        return self._total_slices

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def processors(self) -> list[ProcessorUnit]:
        return list(self._processors)

    def run(
        self,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[LogCallback] = None,
    ) -> Optional[SimulationResult]:
        if self._config is None or self._aggregator is None:
            raise RuntimeError("build() must be called before run()")
        self._on_progress = on_progress
        self._on_log = on_log
        self._flag_unassignable_units()
        self._env.process(self._slot_loop())
        self._env.run()
        if self._stopped:
            self._log(f"stopped at slice {int(self._env.now)}/{self._total_slices}")
            return None

        for pid, (job, unit_state) in sorted(self._running.items()):
            self._close_interval(job, unit_state, self._processors[pid], int(self._env.now))
        self._running.clear()
        unfinished = [job for job in self._jobs if not job.completed]
        for job in unfinished:
            self._aggregator.add_busy(job.assignments)
        if unfinished:
            self._event_bus.publish(
                event_type=EventType.INFEASIBLE,
                time=self.now,
                payload={"reason": f"{len(unfinished)} job(s) did not complete within {self._total_slices} slices"},
            )
        self._report_progress(self._total_slices)
        return self._aggregator.build_result(
            horizon=self.now,
            processor_timeline=self._timeline,
            trace=[event.model_dump(mode="json") for event in self._events],
        )

    def _log(self, message: str) -> None:
        logger.info(message)
        if self._on_log is not None:
            self._on_log(message)

    def _report_progress(self, current: int) -> None:
        if self._on_progress is not None:
            self._on_progress(min(current, self._total_slices), self._total_slices)

    def _flag_unassignable_units(self) -> None:
        for task in self._tasks:
            for unit in task.units:
                if not any(unit.affinity.accepts(processor.type) for processor in self._processors):
                    reason = (
                        f"task {task.task_index} ('{task.task_id}') unit '{unit.id}' "
                        f"has no processor for affinity {unit.affinity.value}"
                    )
                    self._event_bus.publish(
                        event_type=EventType.INFEASIBLE,
                        time=0.0,
                        task_id=task.task_index,
                        segment_id=unit.index,
                        payload={"reason": reason},
                    )
                    self._log(reason)

    def _slot_loop(self):
        report_every = max(1, self._total_slices // self.PROGRESS_STEPS)
        last_reported = -1
        while True:
            if self._stop_requested:
                self._stopped = True
                return
            now = int(self._env.now)
            self._release_jobs(now)
            pending = [job for job in self._jobs if not job.completed]
            if not pending and not self._release_heap:
                return
            if now >= self._total_slices:
                return

            ready = self._ready_units(now)
            if not ready and not self._running:
                if not self._release_heap:
                    # Only unassignable work is left.
                    return
                next_release = max(now + 1, math.ceil(self._release_heap[0][0]))
                yield self._env.timeout(min(next_release, self._total_slices) - now)
                continue

            self._dispatch(now, ready)
            yield self._env.timeout(1)
            self._finish_slot(now + 1)
            if now + 1 - last_reported >= report_every:
                last_reported = now + 1
                self._report_progress(now + 1)

    def _release_jobs(self, now: int) -> None:
        while self._release_heap and self._release_heap[0][0] <= now + 1e-9:
            release, task_index, job_index = heapq.heappop(self._release_heap)
            task = self._tasks[task_index]
            job = JobRuntime(
                job_id=f"{task.task_id}#{job_index}",
                task_index=task_index,
                job_index=job_index,
                release_time=release,
                deadline=task.deadline,
                period=task.period,
                units={
                    unit.id: UnitRuntime(
                        unit=unit,
                        predecessors=list(task.predecessors.get(unit.id, [])),
                        remaining_slots=self._slots_for(unit),
                    )
                    for unit in task.units
                },
            )
            self._jobs.append(job)
            self._event_bus.publish(
                event_type=EventType.JOB_RELEASED,
                time=float(now),
                job_id=job.job_id,
                task_id=task_index,
                payload={"release_time": release, "absolute_deadline": job.absolute_deadline},
            )

    def _ready_units(self, now: int) -> list[ReadyUnit]:
        ready: list[ReadyUnit] = []
        for job in self._jobs:
            if job.completed:
                continue
            for unit_state in job.units.values():
                if unit_state.done or unit_state.running_on is not None:
                    continue
                if not all(job.units[pred].done for pred in unit_state.predecessors):
                    continue
                ready.append(self._ready_view(job, unit_state))
        return ready

    @staticmethod
    def _ready_view(job: JobRuntime, unit_state: UnitRuntime) -> ReadyUnit:
        return ReadyUnit(
            job_id=job.job_id,
            task_index=job.task_index,
            unit_index=unit_state.unit.index,
            unit_id=unit_state.unit.id,
            affinity=unit_state.unit.affinity,
            remaining_slots=unit_state.remaining_slots,
            release_time=job.release_time,
            absolute_deadline=job.absolute_deadline,
            task_period=job.period,
        )

    def _dispatch(self, now: int, ready: list[ReadyUnit]) -> None:
        assert self._policy is not None
        running_views = {
            processor_id: self._ready_view(job, unit_state)
            for processor_id, (job, unit_state) in self._running.items()
        }
        by_key: dict[str, tuple[JobRuntime, UnitRuntime]] = {
            f"{job.job_id}:{unit_state.unit.id}": (job, unit_state)
            for job, unit_state in self._running.values()
        }
        for job in self._jobs:
            if job.completed:
                continue
            for unit_state in job.units.values():
                by_key.setdefault(f"{job.job_id}:{unit_state.unit.id}", (job, unit_state))

        assignments = self._policy.assign(
            SlotSnapshot(
                now=float(now),
                processors=self._processors,
                ready_units=ready,
                running=running_views,
            )
        )

        for processor in self._processors:
            pid = processor.processor_id
            chosen = assignments.get(pid)
            previous = self._running.get(pid)
            previous_key = f"{previous[0].job_id}:{previous[1].unit.id}" if previous else None
            if previous is not None and (chosen is None or chosen.key != previous_key):
                self._close_interval(previous[0], previous[1], processor, now)
                self._event_bus.publish(
                    event_type=EventType.PREEMPT,
                    time=float(now),
                    job_id=previous[0].job_id,
                    task_id=previous[0].task_index,
                    segment_id=previous[1].unit.index,
                    processor_id=pid,
                )
                del self._running[pid]
            if chosen is None:
                continue
            job, unit_state = by_key[chosen.key]
            if chosen.key != previous_key:
                if not chosen.affinity.accepts(processor.type):
                    raise RuntimeError(
                        f"policy assigned {chosen.key} ({chosen.affinity.value}) to {processor.type.value} processor {pid}"
                    )
                unit_state.running_on = pid
                unit_state.running_since = now
                self._running[pid] = (job, unit_state)
                self._event_bus.publish(
                    event_type=EventType.SEGMENT_START,
                    time=float(now),
                    job_id=job.job_id,
                    task_id=job.task_index,
                    segment_id=unit_state.unit.index,
                    processor_id=pid,
                )
            unit_state.remaining_slots -= 1
            self._timeline[pid].append(
                ProcessorTimelineEvent(
                    processor_id=pid,
                    time_slot=now,
                    task_id=job.task_index,
                    segment_id=unit_state.unit.index,
                )
            )

    def _close_interval(self, job: JobRuntime, unit_state: UnitRuntime, processor: ProcessorUnit, end: int) -> None:
        start = unit_state.running_since if unit_state.running_since is not None else end
        job.assignments.append(
            SegmentAssignment(
                unit_index=unit_state.unit.index,
                processor_id=processor.processor_id,
                processor_type=processor.type,
                start=float(start),
                end=float(end),
            )
        )
        unit_state.running_on = None
        unit_state.running_since = None

    def _finish_slot(self, end: int) -> None:
        for pid in sorted(self._running):
            job, unit_state = self._running[pid]
            if unit_state.remaining_slots > 0:
                continue
            self._close_interval(job, unit_state, self._processors[pid], end)
            unit_state.done = True
            del self._running[pid]
            self._event_bus.publish(
                event_type=EventType.SEGMENT_END,
                time=float(end),
                job_id=job.job_id,
                task_id=job.task_index,
                segment_id=unit_state.unit.index,
                processor_id=pid,
            )
            if all(state.done for state in job.units.values()):
                self._complete_job(job, end)

    def _complete_job(self, job: JobRuntime, end: int) -> None:
        job.completed = True
        response_time = end - job.release_time
        if job.deadline is not None and response_time > job.deadline:
            self._event_bus.publish(
                event_type=EventType.DEADLINE_MISS,
                time=float(end),
                job_id=job.job_id,
                task_id=job.task_index,
                payload={"deadline": job.deadline, "response_time": response_time},
            )
            self._log(
                f"t={end}: job {job.job_id} missed its deadline "
                f"(response {response_time:g} > deadline {job.deadline:g})"
            )
        self._event_bus.publish(
            event_type=EventType.JOB_COMPLETE,
            time=float(end),
            job_id=job.job_id,
            task_id=job.task_index,
            payload={
                "job_index": job.job_index,
                "release_time": job.release_time,
                "deadline": job.deadline,
                "completion_time": float(end),
                "assignments": [
                    {
                        "unit_index": item.unit_index,
                        "processor_id": item.processor_id,
                        "processor_type": item.processor_type.value,
                        "start": item.start,
                        "end": item.end,
                    }
                    for item in job.assignments
                ],
            },
        )
