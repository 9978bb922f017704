"""Trace export for completed runs."""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from rtheter_sim.model import SimulationResult

TRACE_FIELDS = [
    "event_id",
    "seq",
    "time",
    "type",
    "job_id",
    "task_id",
    "segment_id",
    "processor_id",
    "payload",
]

TRACE_FORMATS = ("jsonl", "csv")


def export_trace(result: SimulationResult, fmt: str = "jsonl") -> str:
    """Render ``result.trace`` as JSON lines or CSV text."""
    key = fmt.strip().lower()
    if key == "jsonl":
        return "".join(json.dumps(row, ensure_ascii=False) + "\n" for row in result.trace)
    if key == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=TRACE_FIELDS, lineterminator="\n")
        writer.writeheader()
        for row in result.trace:
            writer.writerow(
                {
                    **{name: row.get(name) for name in TRACE_FIELDS if name != "payload"},
                    "payload": json.dumps(row.get("payload", {}), ensure_ascii=False),
                }
            )
        return buffer.getvalue()
    raise ValueError(f"unknown trace format '{fmt}', expected one of {', '.join(TRACE_FORMATS)}")


def write_trace(result: SimulationResult, path: str, fmt: str | None = None) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    resolved = fmt or ("csv" if output.suffix.lower() == ".csv" else "jsonl")
    output.write_text(export_trace(result, fmt=resolved), encoding="utf-8")
    return output
