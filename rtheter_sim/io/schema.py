"""JSON schema for configuration structure validation.

Only the shape is checked here (types, enums, required keys). Value ranges
are left to ``ConfigValidator`` so each violation reports its own kind.
"""

from __future__ import annotations

CONFIG_SCHEMA: dict = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "RTHeterSim Simulation Config",
    "type": "object",
    "required": ["hardware", "taskset"],
    "properties": {
        "version": {"type": "string"},
        "hardware": {
            "type": "object",
            "required": ["processors"],
            "properties": {
                "processors": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/Processor"},
                },
            },
            "additionalProperties": False,
        },
        "taskset": {"$ref": "#/$defs/Taskset"},
        "scheduler": {"type": "string", "minLength": 1},
    },
    "$defs": {
        "Processor": {
            "type": "object",
            "required": ["type", "count"],
            "properties": {
                "type": {"type": "string", "enum": ["CPU", "GPU", "DATACOPY", "FPGA"]},
                "count": {"type": "integer"},
                "preemptive": {"type": "boolean", "default": False},
            },
            "additionalProperties": False,
        },
        "Taskset": {
            "type": "object",
            "required": ["taskCount", "taskModel", "utilization"],
            "properties": {
                "taskCount": {"type": "integer"},
                "taskModel": {"type": "string", "enum": ["DAG", "Suspension"]},
                "edgeDensity": {"type": "number"},
                "utilization": {"type": "number"},
                "segmentNumber": {"type": "integer"},
                "segmentLengthMin": {"type": ["integer", "null"]},
                "segmentLengthMax": {"type": ["integer", "null"]},
                "releaseTimes": {"type": "integer"},
                "randomSeed": {"type": "integer"},
                "genMethod": {"type": "string", "enum": ["User", "Random"]},
                "periodDeadlineRule": {
                    "type": "string",
                    "enum": ["implicit", "constrained", "arbitrary"],
                },
                "deadlineFactor": {"type": "number"},
                "tasks": {
                    "type": "array",
                    "items": {
                        "oneOf": [
                            {"$ref": "#/$defs/DagTask"},
                            {"$ref": "#/$defs/SuspensionTask"},
                        ]
                    },
                },
            },
            "additionalProperties": False,
        },
        "DagTask": {
            "type": "object",
            "required": ["kind", "id", "nodes"],
            "properties": {
                "kind": {"const": "DAG"},
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
                "period": {"type": ["number", "null"]},
                "deadline": {"type": ["number", "null"]},
                "nodes": {"type": "array", "items": {"$ref": "#/$defs/TaskNode"}},
                "edges": {"type": "array", "items": {"$ref": "#/$defs/TaskEdge"}, "default": []},
            },
            "additionalProperties": False,
        },
        "SuspensionTask": {
            "type": "object",
            "required": ["kind", "id", "segments"],
            "properties": {
                "kind": {"const": "Suspension"},
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
                "period": {"type": ["number", "null"]},
                "deadline": {"type": ["number", "null"]},
                "segments": {"type": "array", "items": {"$ref": "#/$defs/TaskSegment"}},
            },
            "additionalProperties": False,
        },
        "TaskNode": {
            "type": "object",
            "required": ["id", "executionTime"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
                "type": {"type": "string", "enum": ["Compute", "Datacopy", "I/O"]},
                "executionTime": {"type": "number"},
                "affinity": {"type": "string", "enum": ["CPU", "GPU", "DATACOPY", "FPGA", "Any"]},
                "x": {"type": "number"},
                "y": {"type": "number"},
                "period": {"type": ["number", "null"]},
                "deadline": {"type": ["number", "null"]},
            },
            "additionalProperties": False,
        },
        "TaskEdge": {
            "type": "object",
            "required": ["id", "source", "target"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "source": {"type": "string", "minLength": 1},
                "target": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
        "TaskSegment": {
            "type": "object",
            "required": ["id", "executionTime"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "type": {"type": "string", "enum": ["CPU", "GPU", "Datacopy", "FPGA"]},
                "executionTime": {"type": "number"},
                "affinity": {"type": "string", "enum": ["CPU", "GPU", "DATACOPY", "FPGA"]},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}
