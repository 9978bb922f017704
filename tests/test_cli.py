from __future__ import annotations

import json
from pathlib import Path

import yaml

from rtheter_sim.cli.main import main


EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def test_cli_validate_ok(capsys) -> None:
    code = main(["validate", "-c", str(EXAMPLES / "dag_user_two_cpu.yaml")])
    assert code == 0
    assert "[OK]" in capsys.readouterr().out


def test_cli_validate_reports_kind(tmp_path: Path, capsys) -> None:
    payload = yaml.safe_load((EXAMPLES / "dag_user_two_cpu.yaml").read_text(encoding="utf-8"))
    payload["taskset"]["tasks"][0]["edges"].append({"id": "e2", "source": "b", "target": "a"})
    config_path = tmp_path / "cycle.yaml"
    config_path.write_text(yaml.safe_dump(payload), encoding="utf-8")

    code = main(["validate", "-c", str(config_path)])
    assert code == 1
    assert "[cycle_detected]" in capsys.readouterr().out


def test_cli_validate_missing_file(tmp_path: Path, capsys) -> None:
    code = main(["validate", "-c", str(tmp_path / "nope.yaml")])
    assert code == 1
    assert "[config_error]" in capsys.readouterr().out


def test_cli_run_outputs(tmp_path: Path) -> None:
    result_out = tmp_path / "result.json"
    trace_out = tmp_path / "trace.jsonl"

    code = main(
        [
            "run",
            "-c",
            str(EXAMPLES / "dag_user_two_cpu.yaml"),
            "--result-out",
            str(result_out),
            "--trace-out",
            str(trace_out),
            "--quiet",
        ]
    )
    assert code == 0
    result = json.loads(result_out.read_text(encoding="utf-8"))
    assert result["isSchedulable"] is True
    assert result["worstResponseTime"] == 5.0
    assert trace_out.read_text(encoding="utf-8").splitlines()[0]


def test_cli_run_strict_fails_on_miss(tmp_path: Path) -> None:
    payload = yaml.safe_load((EXAMPLES / "dag_user_two_cpu.yaml").read_text(encoding="utf-8"))
    payload["taskset"]["tasks"][0]["deadline"] = 4
    config_path = tmp_path / "tight.yaml"
    config_path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    result_out = tmp_path / "result.json"

    args = ["run", "-c", str(config_path), "--result-out", str(result_out), "--quiet"]
    assert main(args) == 0
    assert main([*args, "--strict"]) == 2
    assert json.loads(result_out.read_text(encoding="utf-8"))["hasDeadlineMiss"] is True


def test_cli_run_scheduler_override(tmp_path: Path, capsys) -> None:
    code = main(
        [
            "run",
            "-c",
            str(EXAMPLES / "dag_user_two_cpu.yaml"),
            "--scheduler",
            "rate_monotonic",
            "--result-out",
            str(tmp_path / "result.json"),
        ]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "[..]" in out
    assert "schedulable=True" in out


def test_cli_run_unknown_scheduler_is_error(capsys) -> None:
    code = main(["run", "-c", str(EXAMPLES / "dag_user_two_cpu.yaml"), "--scheduler", "lottery"])
    assert code == 1
    assert "[validation_error]" in capsys.readouterr().out


def test_cli_generate_writes_user_config(tmp_path: Path) -> None:
    out = tmp_path / "generated.yaml"
    code = main(["generate", "-c", str(EXAMPLES / "suspension_random.yaml"), "-o", str(out)])
    assert code == 0

    payload = yaml.safe_load(out.read_text(encoding="utf-8"))
    assert payload["taskset"]["genMethod"] == "User"
    assert len(payload["taskset"]["tasks"]) == 4
    assert main(["validate", "-c", str(out)]) == 0
