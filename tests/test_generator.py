from __future__ import annotations

import math
from random import Random
from typing import Any

import pytest

from rtheter_sim.errors import GenerationError
from rtheter_sim.generation import TasksetGenerator, edge_budget, uunifast
from rtheter_sim.model import (
    DagTask,
    GenMethod,
    PeriodDeadlineRule,
    ProcessorType,
    SimulationConfig,
    SuspensionTask,
    find_cycle,
    topological_order,
)
from rtheter_sim.validation import ConfigValidator


def _payload(model: str = "DAG", **overrides: Any) -> dict[str, Any]:
    taskset = {
        "taskCount": 4,
        "taskModel": model,
        "edgeDensity": 0.4,
        "utilization": 1.6,
        "segmentNumber": 6,
        "segmentLengthMin": 2,
        "segmentLengthMax": 7,
        "releaseTimes": 2,
        "randomSeed": 11,
        "genMethod": "Random",
    }
    taskset.update(overrides)
    return {
        "hardware": {
            "processors": [
                {"type": "CPU", "count": 2},
                {"type": "GPU", "count": 1},
            ]
        },
        "taskset": taskset,
    }


def _generate(payload: dict[str, Any]) -> SimulationConfig:
    return TasksetGenerator().materialize(SimulationConfig.model_validate(payload))


def test_uunifast_shares_sum_to_total() -> None:
    shares = uunifast(5, 2.5, Random(3))
    assert len(shares) == 5
    assert all(share > 0 for share in shares)
    assert math.isclose(sum(shares), 2.5)


def test_edge_budget_rounds_down() -> None:
    assert edge_budget(6, 0.4) == 6
    assert edge_budget(5, 0.29) == 2
    assert edge_budget(4, 1.0) == 6
    assert edge_budget(1, 0.5) == 0


def test_same_seed_is_byte_identical() -> None:
    first = _generate(_payload())
    second = _generate(_payload())
    assert first.model_dump_json() == second.model_dump_json()


def test_different_seed_changes_output() -> None:
    first = _generate(_payload(randomSeed=1))
    second = _generate(_payload(randomSeed=2))
    assert first.model_dump_json() != second.model_dump_json()


def test_generated_dags_are_acyclic_with_expected_edge_count() -> None:
    config = _generate(_payload())
    assert len(config.taskset.tasks) == 4
    for task in config.taskset.tasks:
        assert isinstance(task, DagTask)
        assert len(task.nodes) == 6
        assert len(task.edges) == edge_budget(6, 0.4)
        assert find_cycle(task) == []
        order = topological_order(task)
        for edge in task.edges:
            assert order.index(edge.source) < order.index(edge.target)


def test_generated_lengths_stay_in_bounds() -> None:
    config = _generate(_payload(model="Suspension", segmentNumber=4))
    for task in config.taskset.tasks:
        assert isinstance(task, SuspensionTask)
        assert len(task.segments) == 4
        for segment in task.segments:
            assert 2 <= segment.execution_time <= 7
            assert segment.execution_time == int(segment.execution_time)


def test_generated_affinities_only_use_present_processors() -> None:
    payload = _payload(model="Suspension")
    payload["hardware"]["processors"].append({"type": "FPGA", "count": 0})
    config = _generate(payload)
    used = {segment.affinity for task in config.taskset.tasks for segment in task.segments}
    assert used <= {ProcessorType.CPU, ProcessorType.GPU}


def test_generated_config_passes_user_validation() -> None:
    config = _generate(_payload())
    user_taskset = config.taskset.model_copy(update={"gen_method": GenMethod.USER})
    ConfigValidator().validate(config.model_copy(update={"taskset": user_taskset}))


def test_implicit_deadline_equals_period() -> None:
    config = _generate(_payload())
    for task in config.taskset.tasks:
        assert task.period is not None and task.period >= 1
        assert task.deadline == task.period


def test_constrained_deadline_scales_period() -> None:
    config = _generate(_payload(periodDeadlineRule="constrained", deadlineFactor=0.5))
    assert config.taskset.period_deadline_rule == PeriodDeadlineRule.CONSTRAINED
    for task in config.taskset.tasks:
        assert task.deadline == pytest.approx(task.period * 0.5)


def test_zero_density_gives_no_edges() -> None:
    config = _generate(_payload(edgeDensity=0.0))
    assert all(not task.edges for task in config.taskset.tasks)


def test_positive_density_with_single_node_is_generation_error() -> None:
    with pytest.raises(GenerationError) as exc_info:
        _generate(_payload(segmentNumber=1, edgeDensity=0.5))
    assert exc_info.value.kind == "generation_error"


def test_user_config_is_returned_unchanged() -> None:
    payload = _payload(genMethod="User")
    payload["taskset"]["tasks"] = [
        {
            "kind": "DAG",
            "id": "t0",
            "period": 5,
            "nodes": [{"id": "a", "executionTime": 1}],
        }
    ]
    config = SimulationConfig.model_validate(payload)
    assert TasksetGenerator().materialize(config) is config
