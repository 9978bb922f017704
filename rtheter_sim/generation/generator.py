"""Deterministic random taskset generation."""

from __future__ import annotations

import logging
import math
from random import Random
from typing import Union

from rtheter_sim.errors import GenerationError
from rtheter_sim.model import (
    Affinity,
    DagTask,
    GenMethod,
    HardwareConfig,
    NodeType,
    ProcessorType,
    SegmentType,
    SimulationConfig,
    SuspensionTask,
    TaskEdge,
    TaskModel,
    TaskNode,
    TaskSegment,
    TasksetConfig,
)
from rtheter_sim.model.task import derive_deadline

logger = logging.getLogger(__name__)

DEFAULT_LENGTH_RANGE = (1, 10)
LAYER_SPACING_X = 160.0
LAYER_SPACING_Y = 90.0

_SEGMENT_TYPES = {
    ProcessorType.CPU: SegmentType.CPU,
    ProcessorType.GPU: SegmentType.GPU,
    ProcessorType.DATACOPY: SegmentType.DATACOPY,
    ProcessorType.FPGA: SegmentType.FPGA,
}


def uunifast(n: int, total_utilization: float, rng: Random) -> list[float]:
    """Split ``total_utilization`` into ``n`` shares (UUniFast)."""
    shares: list[float] = []
    remaining = total_utilization
    for i in range(1, n):
        next_remaining = remaining * rng.random() ** (1.0 / (n - i))
        shares.append(remaining - next_remaining)
        remaining = next_remaining
    shares.append(remaining)
    return shares


def edge_budget(node_count: int, edge_density: float) -> int:
    """Edges kept for a DAG of ``node_count`` nodes, remainder rounded down."""
    max_edges = node_count * (node_count - 1) // 2
    # Absorb float noise such as 0.29 * 100 = 28.999999999999996.
    return min(max_edges, math.floor(edge_density * max_edges + 1e-9))


class TasksetGenerator:
    """Build task lists as a pure function of seed, parameters and hardware."""

    def __init__(self, default_length_range: tuple[int, int] = DEFAULT_LENGTH_RANGE) -> None:
        self._default_length_range = default_length_range

    def materialize(self, config: SimulationConfig) -> SimulationConfig:
        """Return ``config`` with an explicit task list.

        User-supplied tasks are kept as they are.
        """
        if config.taskset.gen_method == GenMethod.USER:
            return config
        return config.with_tasks(self.generate(config.taskset, config.hardware))

    def generate(
        self,
        taskset: TasksetConfig,
        hardware: HardwareConfig,
    ) -> list[Union[DagTask, SuspensionTask]]:
        processor_types = [ptype for ptype, capacity in hardware.capacity().items() if capacity > 0]
        if not processor_types:
            raise GenerationError("cannot generate tasks without any configured processor")
        if taskset.task_model == TaskModel.DAG and taskset.edge_density > 0 and taskset.segment_number < 2:
            raise GenerationError(
                f"edge density {taskset.edge_density} is unreachable with {taskset.segment_number} node per DAG"
            )

        rng = Random(taskset.random_seed)
        shares = uunifast(taskset.task_count, taskset.utilization, rng)
        tasks: list[Union[DagTask, SuspensionTask]] = []
        for task_idx, share in enumerate(shares):
            if share <= 0:
                raise GenerationError(f"task {task_idx} received a non-positive utilization share")
            if taskset.task_model == TaskModel.DAG:
                tasks.append(self._generate_dag(task_idx, share, taskset, processor_types, rng))
            else:
                tasks.append(self._generate_suspension(task_idx, share, taskset, processor_types, rng))
        logger.info(
            "generated %d %s tasks (seed=%d, target utilization=%.3f)",
            len(tasks),
            taskset.task_model.value,
            taskset.random_seed,
            taskset.utilization,
        )
        return tasks

    def _length_bounds(self, taskset: TasksetConfig) -> tuple[int, int]:
        lower = taskset.segment_length_min
        upper = taskset.segment_length_max
        if lower is None and upper is None:
            return self._default_length_range
        if lower is None:
            lower = min(self._default_length_range[0], upper)
        if upper is None:
            upper = max(self._default_length_range[1], lower)
        return lower, upper

    @staticmethod
    def _timing(total: float, share: float, taskset: TasksetConfig) -> tuple[float, float]:
        period = float(max(1, math.ceil(total / share)))
        deadline = derive_deadline(period, taskset.period_deadline_rule, taskset.deadline_factor)
        return period, deadline

    def _generate_dag(
        self,
        task_idx: int,
        share: float,
        taskset: TasksetConfig,
        processor_types: list[ProcessorType],
        rng: Random,
    ) -> DagTask:
        lower, upper = self._length_bounds(taskset)
        node_count = taskset.segment_number
        lengths = [rng.randint(lower, upper) for _ in range(node_count)]
        affinities = [rng.choice(processor_types) for _ in range(node_count)]

        pairs = [(src, dst) for src in range(node_count) for dst in range(src + 1, node_count)]
        rng.shuffle(pairs)
        kept = sorted(pairs[: edge_budget(node_count, taskset.edge_density)])

        levels = [0] * node_count
        for src, dst in kept:
            levels[dst] = max(levels[dst], levels[src] + 1)
        rows: dict[int, int] = {}
        nodes: list[TaskNode] = []
        for idx in range(node_count):
            row = rows.get(levels[idx], 0)
            rows[levels[idx]] = row + 1
            affinity = affinities[idx]
            nodes.append(
                TaskNode(
                    id=f"t{task_idx}_n{idx}",
                    name=f"T{task_idx}.N{idx}",
                    type=NodeType.DATACOPY if affinity == ProcessorType.DATACOPY else NodeType.COMPUTE,
                    execution_time=float(lengths[idx]),
                    affinity=Affinity(affinity.value),
                    x=levels[idx] * LAYER_SPACING_X,
                    y=row * LAYER_SPACING_Y,
                )
            )
        edges = [
            TaskEdge(id=f"t{task_idx}_e{edge_idx}", source=f"t{task_idx}_n{src}", target=f"t{task_idx}_n{dst}")
            for edge_idx, (src, dst) in enumerate(kept)
        ]
        period, deadline = self._timing(float(sum(lengths)), share, taskset)
        return DagTask(
            id=f"task{task_idx}",
            name=f"Task {task_idx}",
            period=period,
            deadline=deadline,
            nodes=nodes,
            edges=edges,
        )

    def _generate_suspension(
        self,
        task_idx: int,
        share: float,
        taskset: TasksetConfig,
        processor_types: list[ProcessorType],
        rng: Random,
    ) -> SuspensionTask:
        lower, upper = self._length_bounds(taskset)
        segments: list[TaskSegment] = []
        for seg_idx in range(taskset.segment_number):
            length = rng.randint(lower, upper)
            affinity = rng.choice(processor_types)
            segments.append(
                TaskSegment(
                    id=f"t{task_idx}_s{seg_idx}",
                    type=_SEGMENT_TYPES[affinity],
                    execution_time=float(length),
                    affinity=affinity,
                )
            )
        total = sum(segment.execution_time for segment in segments)
        period, deadline = self._timing(total, share, taskset)
        return SuspensionTask(
            id=f"task{task_idx}",
            name=f"Task {task_idx}",
            period=period,
            deadline=deadline,
            segments=segments,
        )
