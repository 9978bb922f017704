"""Configuration domain models: hardware, taskset and task graphs."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def _model_config() -> ConfigDict:
    return ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class ProcessorType(str, Enum):
    CPU = "CPU"
    GPU = "GPU"
    DATACOPY = "DATACOPY"
    FPGA = "FPGA"


class Affinity(str, Enum):
    """Processor type a unit may run on, or any of them."""

    CPU = "CPU"
    GPU = "GPU"
    DATACOPY = "DATACOPY"
    FPGA = "FPGA"
    ANY = "Any"

    def accepts(self, processor_type: ProcessorType) -> bool:
        return self is Affinity.ANY or self.value == processor_type.value


class NodeType(str, Enum):
    COMPUTE = "Compute"
    DATACOPY = "Datacopy"
    IO = "I/O"


class SegmentType(str, Enum):
    CPU = "CPU"
    GPU = "GPU"
    DATACOPY = "Datacopy"
    FPGA = "FPGA"


class TaskModel(str, Enum):
    DAG = "DAG"
    SUSPENSION = "Suspension"


class GenMethod(str, Enum):
    USER = "User"
    RANDOM = "Random"


class PeriodDeadlineRule(str, Enum):
    """How a deadline is derived from a period when none is given."""

    IMPLICIT = "implicit"
    CONSTRAINED = "constrained"
    ARBITRARY = "arbitrary"


class Processor(BaseModel):
    model_config = _model_config()

    type: ProcessorType
    count: int
    preemptive: bool = False


class HardwareConfig(BaseModel):
    model_config = _model_config()

    processors: list[Processor] = Field(default_factory=list)

    def capacity(self) -> dict[ProcessorType, int]:
        """Total unit count per processor type, in first-seen order."""
        totals: dict[ProcessorType, int] = {}
        for processor in self.processors:
            totals[processor.type] = totals.get(processor.type, 0) + max(0, processor.count)
        return totals

    def supports(self, affinity: Affinity) -> bool:
        return any(
            processor.count >= 1 and affinity.accepts(processor.type)
            for processor in self.processors
        )


class TaskNode(BaseModel):
    model_config = _model_config()

    id: str
    name: str = ""
    type: NodeType = NodeType.COMPUTE
    execution_time: float
    affinity: Affinity = Affinity.ANY
    x: float = 0.0
    y: float = 0.0
    period: Optional[float] = None
    deadline: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def default_deadline_to_period(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("period") is not None and data.get("deadline") is None:
            data = dict(data)
            data["deadline"] = data["period"]
        return data


class TaskEdge(BaseModel):
    model_config = _model_config()

    id: str
    source: str
    target: str


class TaskSegment(BaseModel):
    model_config = _model_config()

    id: str
    type: SegmentType = SegmentType.CPU
    execution_time: float
    affinity: ProcessorType = ProcessorType.CPU


class DagTask(BaseModel):
    model_config = _model_config()

    kind: Literal["DAG"] = "DAG"
    id: str
    name: str = ""
    period: Optional[float] = None
    deadline: Optional[float] = None
    nodes: list[TaskNode] = Field(default_factory=list)
    edges: list[TaskEdge] = Field(default_factory=list)


class SuspensionTask(BaseModel):
    model_config = _model_config()

    kind: Literal["Suspension"] = "Suspension"
    id: str
    name: str = ""
    period: Optional[float] = None
    deadline: Optional[float] = None
    segments: list[TaskSegment] = Field(default_factory=list)


Task = Annotated[Union[DagTask, SuspensionTask], Field(discriminator="kind")]


class TasksetConfig(BaseModel):
    model_config = _model_config()

    task_count: int
    task_model: TaskModel
    edge_density: float = 0.0
    utilization: float
    segment_number: int = 1
    segment_length_min: Optional[int] = None
    segment_length_max: Optional[int] = None
    release_times: int = 1
    random_seed: int = 0
    gen_method: GenMethod = GenMethod.RANDOM
    period_deadline_rule: PeriodDeadlineRule = PeriodDeadlineRule.IMPLICIT
    deadline_factor: float = 1.0
    tasks: list[Task] = Field(default_factory=list)


class SimulationConfig(BaseModel):
    """Complete immutable input to one simulation run."""

    model_config = _model_config()

    hardware: HardwareConfig
    taskset: TasksetConfig
    scheduler: str = "edf"

    def with_tasks(self, tasks: list[Union[DagTask, SuspensionTask]]) -> "SimulationConfig":
        """Return a copy whose taskset carries an explicit task list."""
        taskset = self.taskset.model_copy(update={"tasks": list(tasks)})
        return self.model_copy(update={"taskset": taskset})
