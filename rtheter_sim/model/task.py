"""Operations shared by every task variant.

Tasks are a tagged union (``DagTask | SuspensionTask``). Each operation
dispatches on the concrete variant and raises ``TypeError`` for anything
else, so adding a variant fails loudly until every operation handles it.
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Optional, Union

from .spec import Affinity, DagTask, PeriodDeadlineRule, SuspensionTask

AnyTask = Union[DagTask, SuspensionTask]


@dataclass(frozen=True, slots=True)
class TaskUnit:
    """Schedulable unit of a task: a DAG node or a suspension segment."""

    index: int
    id: str
    execution_time: float
    affinity: Affinity


def _unsupported(task: object) -> TypeError:
    return TypeError(f"unsupported task variant {type(task).__name__}")


def task_units(task: AnyTask) -> list[TaskUnit]:
    if isinstance(task, DagTask):
        return [
            TaskUnit(index=idx, id=node.id, execution_time=node.execution_time, affinity=node.affinity)
            for idx, node in enumerate(task.nodes)
        ]
    if isinstance(task, SuspensionTask):
        return [
            TaskUnit(
                index=idx,
                id=segment.id,
                execution_time=segment.execution_time,
                affinity=Affinity(segment.affinity.value),
            )
            for idx, segment in enumerate(task.segments)
        ]
    raise _unsupported(task)


def task_affinities(task: AnyTask) -> dict[str, Affinity]:
    return {unit.id: unit.affinity for unit in task_units(task)}


def total_execution_time(task: AnyTask) -> float:
    return sum(unit.execution_time for unit in task_units(task))


def predecessor_map(task: AnyTask) -> dict[str, list[str]]:
    """Direct predecessors of every unit."""
    if isinstance(task, DagTask):
        preds: dict[str, list[str]] = {node.id: [] for node in task.nodes}
        for edge in task.edges:
            preds.setdefault(edge.target, []).append(edge.source)
        return preds
    if isinstance(task, SuspensionTask):
        ids = [segment.id for segment in task.segments]
        return {seg_id: ([ids[idx - 1]] if idx > 0 else []) for idx, seg_id in enumerate(ids)}
    raise _unsupported(task)


def find_cycle(task: AnyTask) -> list[str]:
    """Return the units left over by Kahn's algorithm (empty when acyclic)."""
    preds = predecessor_map(task)
    adjacency: dict[str, set[str]] = defaultdict(set)
    indegree: dict[str, int] = {unit_id: 0 for unit_id in preds}
    for dst, sources in preds.items():
        for src in sources:
            if dst not in adjacency[src]:
                adjacency[src].add(dst)
                indegree[dst] = indegree.get(dst, 0) + 1
            indegree.setdefault(src, 0)

    queue = deque(node for node, deg in indegree.items() if deg == 0)
    visited: set[str] = set()
    while queue:
        current = queue.popleft()
        visited.add(current)
        for nxt in sorted(adjacency[current]):
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                queue.append(nxt)
    return [node for node in indegree if node not in visited]


def topological_order(task: AnyTask) -> list[str]:
    """Units in an order compatible with precedence, ties by declaration order."""
    preds = predecessor_map(task)
    remaining = {unit_id: set(sources) for unit_id, sources in preds.items()}
    order: list[str] = []
    while remaining:
        ready = [unit_id for unit_id, sources in remaining.items() if not sources]
        if not ready:
            raise ValueError(f"task '{task.id}' DAG contains cycle")
        for unit_id in ready:
            order.append(unit_id)
            del remaining[unit_id]
        for sources in remaining.values():
            sources.difference_update(ready)
    return order


def precedes(task: AnyTask, first: str, second: str) -> bool:
    """True when ``first`` must finish before ``second`` may start."""
    preds = predecessor_map(task)
    stack = list(preds.get(second, []))
    seen: set[str] = set()
    while stack:
        current = stack.pop()
        if current == first:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(preds.get(current, []))
    return False


def derive_deadline(period: float, rule: PeriodDeadlineRule, factor: float) -> float:
    if rule is PeriodDeadlineRule.IMPLICIT:
        return period
    return period * factor


def resolve_timing(
    task: AnyTask,
    rule: PeriodDeadlineRule = PeriodDeadlineRule.IMPLICIT,
    factor: float = 1.0,
) -> tuple[Optional[float], Optional[float]]:
    """Return ``(period, relative_deadline)`` for a task.

    Task-level values win; a DAG falls back to the first node declaring
    them. A missing deadline is derived from the period with ``rule``.
    """
    period = task.period
    deadline = task.deadline
    if isinstance(task, DagTask):
        if period is None:
            period = next((node.period for node in task.nodes if node.period is not None), None)
        if deadline is None:
            deadline = next((node.deadline for node in task.nodes if node.deadline is not None), None)
    elif not isinstance(task, SuspensionTask):
        raise _unsupported(task)
    if deadline is None and period is not None:
        deadline = derive_deadline(period, rule, factor)
    return period, deadline
