"""Model package exports."""

from .progress import RunState, SimulationProgress
from .result import DeadlineMiss, ProcessorTimelineEvent, SimulationResult, TaskResponseStats
from .runtime import JobCompletion, ProcessorUnit, ReadyUnit, SegmentAssignment
from .spec import (
    Affinity,
    DagTask,
    GenMethod,
    HardwareConfig,
    NodeType,
    PeriodDeadlineRule,
    Processor,
    ProcessorType,
    SegmentType,
    SimulationConfig,
    SuspensionTask,
    Task,
    TaskEdge,
    TaskModel,
    TaskNode,
    TaskSegment,
    TasksetConfig,
)
from .task import (
    AnyTask,
    TaskUnit,
    find_cycle,
    precedes,
    predecessor_map,
    resolve_timing,
    task_affinities,
    task_units,
    topological_order,
    total_execution_time,
)

__all__ = [
    "Affinity",
    "AnyTask",
    "DagTask",
    "DeadlineMiss",
    "GenMethod",
    "HardwareConfig",
    "JobCompletion",
    "NodeType",
    "PeriodDeadlineRule",
    "Processor",
    "ProcessorTimelineEvent",
    "ProcessorType",
    "ProcessorUnit",
    "ReadyUnit",
    "RunState",
    "SegmentAssignment",
    "SegmentType",
    "SimulationConfig",
    "SimulationProgress",
    "SimulationResult",
    "SuspensionTask",
    "Task",
    "TaskEdge",
    "TaskModel",
    "TaskNode",
    "TaskResponseStats",
    "TaskSegment",
    "TaskUnit",
    "TasksetConfig",
    "find_cycle",
    "precedes",
    "predecessor_map",
    "resolve_timing",
    "task_affinities",
    "task_units",
    "topological_order",
    "total_execution_time",
]
