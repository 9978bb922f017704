from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from rtheter_sim.errors import ConfigError
from rtheter_sim.io import ConfigLoader, format_path
from rtheter_sim.model import DagTask, GenMethod, SimulationConfig, SuspensionTask, TaskModel


EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def _base_payload() -> dict[str, Any]:
    return {
        "version": "1.0",
        "hardware": {"processors": [{"type": "CPU", "count": 1}]},
        "taskset": {
            "taskCount": 1,
            "taskModel": "Suspension",
            "utilization": 0.4,
            "segmentNumber": 2,
            "genMethod": "User",
            "tasks": [
                {
                    "id": "s0",
                    "period": 10,
                    "segments": [
                        {"id": "a", "type": "CPU", "executionTime": 2, "affinity": "CPU"},
                        {"id": "b", "type": "CPU", "executionTime": 2, "affinity": "CPU"},
                    ],
                }
            ],
        },
    }


def test_format_path_renders_indices() -> None:
    assert format_path(["hardware", "processors", 0, "count"]) == "hardware.processors[0].count"
    assert format_path([]) == "<root>"


def test_task_kind_defaults_to_task_model() -> None:
    config = ConfigLoader().load_data(_base_payload())
    task = config.taskset.tasks[0]
    assert isinstance(task, SuspensionTask)
    assert config.taskset.task_model == TaskModel.SUSPENSION
    assert config.scheduler == "edf"


def test_ui_layout_is_ignored() -> None:
    payload = _base_payload()
    payload["uiLayout"] = {"t0": {"x": 10, "y": 20}}
    config = ConfigLoader().load_data(payload)
    assert config.taskset.gen_method == GenMethod.USER


def test_unsupported_version_is_rejected() -> None:
    payload = _base_payload()
    payload["version"] = "0.9"
    with pytest.raises(ConfigError) as exc_info:
        ConfigLoader().load_data(payload)
    assert exc_info.value.field == "version"


def test_schema_error_reports_path() -> None:
    payload = _base_payload()
    payload["hardware"]["processors"][0]["count"] = "two"
    with pytest.raises(ConfigError) as exc_info:
        ConfigLoader().load_data(payload)
    assert exc_info.value.field == "hardware.processors[0].count"
    assert exc_info.value.kind == "config_error"


def test_unknown_processor_type_is_schema_error() -> None:
    payload = _base_payload()
    payload["hardware"]["processors"][0]["type"] = "TPU"
    with pytest.raises(ConfigError, match="schema validation failed"):
        ConfigLoader().load_data(payload)


def test_missing_file_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        ConfigLoader().load(str(tmp_path / "missing.yaml"))


def test_invalid_yaml_text_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="invalid config syntax"):
        ConfigLoader().load_text("hardware: [unterminated")


def test_non_object_root_is_rejected() -> None:
    with pytest.raises(ConfigError, match="root must be object"):
        ConfigLoader().load_text("[]")


def test_save_and_reload_yaml_and_json(tmp_path: Path) -> None:
    loader = ConfigLoader()
    config = loader.load_data(_base_payload())
    for name in ("config.yaml", "config.json"):
        path = tmp_path / name
        loader.save(config, str(path))
        assert loader.load(str(path)) == config

    raw = yaml.safe_load((tmp_path / "config.yaml").read_text(encoding="utf-8"))
    assert raw["version"] == "1.0"
    assert "taskCount" in raw["taskset"]
    assert raw["taskset"]["tasks"][0]["kind"] == "Suspension"
    assert json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))["scheduler"] == "edf"


def test_example_configs_load() -> None:
    loader = ConfigLoader()
    dag = loader.load(str(EXAMPLES / "dag_user_two_cpu.yaml"))
    assert isinstance(dag.taskset.tasks[0], DagTask)
    assert len(dag.taskset.tasks[0].edges) == 2

    random_config = loader.load(str(EXAMPLES / "suspension_random.yaml"))
    assert random_config.taskset.tasks == []
    assert random_config.scheduler == "rm"


def test_files_use_camel_case_while_models_accept_both() -> None:
    payload = _base_payload()
    payload["taskset"]["task_count"] = payload["taskset"].pop("taskCount")
    with pytest.raises(ConfigError, match="schema validation failed"):
        ConfigLoader().load_data(payload)

    payload.pop("version")
    payload["taskset"]["tasks"][0]["kind"] = "Suspension"
    config = SimulationConfig.model_validate(payload)
    assert config.taskset.task_count == 1
