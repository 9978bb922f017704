"""Run lifecycle states and live progress snapshots."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def terminal(self) -> bool:
        return self in {RunState.COMPLETED, RunState.FAILED, RunState.STOPPED}


class SimulationProgress(BaseModel):
    """One snapshot of a running simulation; superseded by the next."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    progress: float = Field(ge=0.0, le=1.0)
    current_slice: int = Field(ge=0)
    total_slices: int = Field(ge=0)
    status: str = ""
    logs: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_slices(self) -> "SimulationProgress":
        if self.current_slice > self.total_slices:
            raise ValueError("currentSlice must be <= totalSlices")
        return self
