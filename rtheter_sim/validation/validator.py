"""Semantic admission checks for simulation configs."""

from __future__ import annotations

import logging

from rtheter_sim.errors import CycleDetectedError, UnsatisfiableAffinityError, ValidationError
from rtheter_sim.model import (
    Affinity,
    DagTask,
    GenMethod,
    HardwareConfig,
    PeriodDeadlineRule,
    SimulationConfig,
    SuspensionTask,
    TaskModel,
    TasksetConfig,
    find_cycle,
    resolve_timing,
)
from rtheter_sim.model.task import AnyTask
from rtheter_sim.schedulers import available_policies

logger = logging.getLogger(__name__)


class ConfigValidator:
    """Accept a config or raise the first violated invariant.

    Checks run in a fixed order (hardware, taskset, scheduler, then the
    user-supplied task list) so the same config always reports the same
    error.
    """

    def validate(self, config: SimulationConfig) -> SimulationConfig:
        self._validate_hardware(config.hardware)
        self._validate_taskset(config.taskset)
        if config.scheduler.strip().lower() not in available_policies():
            raise ValidationError(
                "scheduler",
                f"unknown scheduler '{config.scheduler}', expected one of {', '.join(available_policies())}",
            )
        if config.taskset.gen_method == GenMethod.USER:
            self._validate_user_tasks(config.taskset, config.hardware)
        logger.debug("config accepted: %d processors, %d tasks", len(config.hardware.processors), config.taskset.task_count)
        return config

    def is_admissible(self, config: SimulationConfig) -> bool:
        try:
            self.validate(config)
        except ValidationError:
            return False
        return True

    @staticmethod
    def _validate_hardware(hardware: HardwareConfig) -> None:
        if not hardware.processors:
            raise ValidationError("hardware.processors", "at least one processor is required")
        for idx, processor in enumerate(hardware.processors):
            if processor.count < 1:
                raise ValidationError(
                    f"hardware.processors[{idx}].count",
                    f"{processor.type.value} processor count must be >= 1, got {processor.count}",
                )

    @staticmethod
    def _validate_taskset(taskset: TasksetConfig) -> None:
        if taskset.task_count < 1:
            raise ValidationError("taskset.taskCount", f"must be >= 1, got {taskset.task_count}")
        if not 0 < taskset.utilization <= taskset.task_count:
            raise ValidationError(
                "taskset.utilization",
                f"must lie in (0, taskCount={taskset.task_count}], got {taskset.utilization}",
            )
        if taskset.release_times < 0:
            raise ValidationError("taskset.releaseTimes", f"must be >= 0, got {taskset.release_times}")

        if taskset.task_model == TaskModel.DAG:
            if not 0.0 <= taskset.edge_density <= 1.0:
                raise ValidationError(
                    "taskset.edgeDensity", f"must lie in [0, 1], got {taskset.edge_density}"
                )
        if taskset.task_model == TaskModel.SUSPENSION or taskset.gen_method == GenMethod.RANDOM:
            if taskset.segment_number < 1:
                raise ValidationError(
                    "taskset.segmentNumber", f"must be >= 1, got {taskset.segment_number}"
                )
        # Bounds also drive DAG node lengths when generating.
        lower = taskset.segment_length_min
        upper = taskset.segment_length_max
        if lower is not None and lower <= 0:
            raise ValidationError("taskset.segmentLengthMin", f"must be > 0, got {lower}")
        if upper is not None and upper <= 0:
            raise ValidationError("taskset.segmentLengthMax", f"must be > 0, got {upper}")
        if lower is not None and upper is not None and lower > upper:
            raise ValidationError(
                "taskset.segmentLengthMin",
                f"segmentLengthMin {lower} exceeds segmentLengthMax {upper}",
            )

        if taskset.deadline_factor <= 0:
            raise ValidationError("taskset.deadlineFactor", f"must be > 0, got {taskset.deadline_factor}")
        if taskset.period_deadline_rule == PeriodDeadlineRule.CONSTRAINED and taskset.deadline_factor > 1:
            raise ValidationError(
                "taskset.deadlineFactor",
                f"constrained deadlines require factor <= 1, got {taskset.deadline_factor}",
            )

    def _validate_user_tasks(self, taskset: TasksetConfig, hardware: HardwareConfig) -> None:
        if not taskset.tasks:
            raise ValidationError("taskset.tasks", "genMethod=User requires an explicit task list")
        seen: set[str] = set()
        for task_idx, task in enumerate(taskset.tasks):
            prefix = f"taskset.tasks[{task_idx}]"
            if task.id in seen:
                raise ValidationError(f"{prefix}.id", f"duplicate task id '{task.id}'")
            seen.add(task.id)
            if isinstance(task, DagTask):
                self._validate_dag(prefix, task, hardware)
            elif isinstance(task, SuspensionTask):
                self._validate_suspension(prefix, task, hardware)
            else:
                raise TypeError(f"unsupported task variant {type(task).__name__}")
            self._validate_timing(prefix, task, taskset)

    @staticmethod
    def _validate_dag(prefix: str, task: DagTask, hardware: HardwareConfig) -> None:
        if not task.nodes:
            raise ValidationError(f"{prefix}.nodes", f"task '{task.id}' has no nodes")
        node_ids: set[str] = set()
        for node_idx, node in enumerate(task.nodes):
            field = f"{prefix}.nodes[{node_idx}]"
            if node.id in node_ids:
                raise ValidationError(f"{field}.id", f"task '{task.id}' has duplicate node id '{node.id}'")
            node_ids.add(node.id)
            if node.execution_time <= 0:
                raise ValidationError(
                    f"{field}.executionTime",
                    f"task '{task.id}' node '{node.id}' executionTime must be > 0",
                )
            for key, value in (("period", node.period), ("deadline", node.deadline)):
                if value is not None and value <= 0:
                    raise ValidationError(f"{field}.{key}", f"task '{task.id}' node '{node.id}' {key} must be > 0")

        edge_ids: set[str] = set()
        for edge_idx, edge in enumerate(task.edges):
            field = f"{prefix}.edges[{edge_idx}]"
            if edge.id in edge_ids:
                raise ValidationError(f"{field}.id", f"task '{task.id}' has duplicate edge id '{edge.id}'")
            edge_ids.add(edge.id)
            for end in ("source", "target"):
                node_ref = getattr(edge, end)
                if node_ref not in node_ids:
                    raise ValidationError(
                        f"{field}.{end}",
                        f"task '{task.id}' edge '{edge.id}' references unknown node '{node_ref}'",
                    )
            if edge.source == edge.target:
                raise CycleDetectedError(f"{field}", task.id, [edge.source])

        cycle = find_cycle(task)
        if cycle:
            raise CycleDetectedError(f"{prefix}.edges", task.id, cycle)

        for node_idx, node in enumerate(task.nodes):
            if not hardware.supports(node.affinity):
                raise UnsatisfiableAffinityError(
                    f"{prefix}.nodes[{node_idx}].affinity", task.id, node.id, node.affinity.value
                )

    @staticmethod
    def _validate_suspension(prefix: str, task: SuspensionTask, hardware: HardwareConfig) -> None:
        if not task.segments:
            raise ValidationError(f"{prefix}.segments", f"task '{task.id}' has no segments")
        segment_ids: set[str] = set()
        for seg_idx, segment in enumerate(task.segments):
            field = f"{prefix}.segments[{seg_idx}]"
            if segment.id in segment_ids:
                raise ValidationError(
                    f"{field}.id", f"task '{task.id}' has duplicate segment id '{segment.id}'"
                )
            segment_ids.add(segment.id)
            if segment.execution_time <= 0:
                raise ValidationError(
                    f"{field}.executionTime",
                    f"task '{task.id}' segment '{segment.id}' executionTime must be > 0",
                )
            if not hardware.supports(Affinity(segment.affinity.value)):
                raise UnsatisfiableAffinityError(
                    f"{field}.affinity", task.id, segment.id, segment.affinity.value
                )

    @staticmethod
    def _validate_timing(prefix: str, task: AnyTask, taskset: TasksetConfig) -> None:
        period, deadline = resolve_timing(task, taskset.period_deadline_rule, taskset.deadline_factor)
        if period is None:
            raise ValidationError(f"{prefix}.period", f"task '{task.id}' must define a period")
        if period <= 0:
            raise ValidationError(f"{prefix}.period", f"task '{task.id}' period must be > 0")
        if deadline is None or deadline <= 0:
            raise ValidationError(f"{prefix}.deadline", f"task '{task.id}' deadline must be > 0")
