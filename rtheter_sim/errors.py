"""Error hierarchy shared by validation, generation and run control."""

from __future__ import annotations

from typing import Any


class SimulationError(Exception):
    """Base error with a machine-checkable kind."""

    kind = "simulation_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(SimulationError):
    """Config rejected before submission."""

    kind = "validation_error"

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update({"field": self.field, "reason": self.reason})
        return payload


class ConfigError(ValidationError):
    """Configuration file could not be read or parsed into the model."""

    kind = "config_error"


class UnsatisfiableAffinityError(ValidationError):
    """A node or segment requires a processor type absent from hardware."""

    kind = "unsatisfiable_affinity"

    def __init__(self, field: str, task_id: str, unit_id: str, affinity: str) -> None:
        super().__init__(
            field,
            f"task '{task_id}' unit '{unit_id}' requires {affinity} but no such processor is configured",
        )
        self.task_id = task_id
        self.unit_id = unit_id
        self.affinity = affinity


class CycleDetectedError(ValidationError):
    """Task edges do not form a directed acyclic graph."""

    kind = "cycle_detected"

    def __init__(self, field: str, task_id: str, nodes: list[str]) -> None:
        super().__init__(field, f"task '{task_id}' DAG contains cycle through {', '.join(nodes)}")
        self.task_id = task_id
        self.nodes = nodes


class GenerationError(SimulationError):
    """Random generation could not satisfy the requested constraints."""

    kind = "generation_error"


class RunConflictError(SimulationError):
    """A run was submitted while another run of the session is active."""

    kind = "run_conflict"


class EngineFailure(SimulationError):
    """Opaque engine failure surfaced as a failed terminal event."""

    kind = "engine_failure"


class CancelledError(SimulationError):
    """Cancellation arrived after the run already terminated. Benign."""

    kind = "cancelled"
