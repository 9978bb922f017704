from __future__ import annotations

import csv
import io
import json
from pathlib import Path

import pytest

from rtheter_sim.core import SlotEngine
from rtheter_sim.io import ConfigLoader, export_trace, write_trace
from rtheter_sim.model import SimulationResult


EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def _result() -> SimulationResult:
    engine = SlotEngine()
    engine.build(ConfigLoader().load(str(EXAMPLES / "dag_user_two_cpu.yaml")))
    result = engine.run()
    assert result is not None
    return result


def test_jsonl_has_one_event_per_line() -> None:
    result = _result()
    lines = export_trace(result, "jsonl").splitlines()
    assert len(lines) == len(result.trace)
    rows = [json.loads(line) for line in lines]
    assert [row["seq"] for row in rows] == list(range(len(rows)))
    assert rows[-1]["type"] == "JobComplete"


def test_csv_serializes_payload_as_json() -> None:
    result = _result()
    reader = csv.DictReader(io.StringIO(export_trace(result, "CSV")))
    rows = list(reader)
    assert len(rows) == len(result.trace)
    complete = [row for row in rows if row["type"] == "JobComplete"][0]
    assert json.loads(complete["payload"])["completion_time"] == 5.0


def test_unknown_format_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown trace format"):
        export_trace(_result(), "xml")


def test_write_trace_picks_format_from_suffix(tmp_path: Path) -> None:
    result = _result()
    csv_path = write_trace(result, str(tmp_path / "out" / "trace.csv"))
    assert csv_path.read_text(encoding="utf-8").startswith("event_id,seq,time")
    jsonl_path = write_trace(result, str(tmp_path / "trace.log"))
    assert json.loads(jsonl_path.read_text(encoding="utf-8").splitlines()[0])["event_id"] == "evt-00000000"
