"""Simulation event definitions."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    JOB_RELEASED = "JobReleased"
    SEGMENT_START = "SegmentStart"
    SEGMENT_END = "SegmentEnd"
    PREEMPT = "Preempt"
    DEADLINE_MISS = "DeadlineMiss"
    JOB_COMPLETE = "JobComplete"
    INFEASIBLE = "Infeasible"


class SimEvent(BaseModel):
    """Normalized event envelope for tracing and aggregation."""

    model_config = ConfigDict(extra="forbid")

    event_id: str
    seq: int = Field(ge=0)
    time: float = Field(ge=0)
    type: EventType
    job_id: Optional[str] = None
    task_id: Optional[int] = None
    segment_id: Optional[int] = None
    processor_id: Optional[int] = None
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), ensure_ascii=False)
