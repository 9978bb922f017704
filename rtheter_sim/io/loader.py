"""Configuration loading, normalization and structural validation."""

from __future__ import annotations

from collections.abc import Iterable
import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from pydantic import ValidationError as PydanticValidationError

from rtheter_sim.errors import ConfigError
from rtheter_sim.model import SimulationConfig

from .schema import CONFIG_SCHEMA


def format_path(parts: Iterable[Any]) -> str:
    """Render ``("hardware", "processors", 0, "count")`` as ``hardware.processors[0].count``."""
    rendered = ""
    for part in parts:
        if isinstance(part, int):
            rendered += f"[{part}]"
        else:
            rendered += f".{part}" if rendered else str(part)
    return rendered or "<root>"


class ConfigLoader:
    """Load simulation configs from JSON/YAML files or mappings."""

    SUPPORTED_VERSION = "1.0"

    def load(self, path: str) -> SimulationConfig:
        raw = self._read(path)
        return self.load_data(raw)

    def load_text(self, text: str) -> SimulationConfig:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError("<root>", f"invalid config syntax: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("<root>", "config root must be object")
        return self.load_data(data)

    def load_data(self, payload: dict[str, Any]) -> SimulationConfig:
        normalized = self._normalize(payload)
        self._validate_schema(normalized)
        normalized.pop("version", None)
        try:
            return SimulationConfig.model_validate(normalized)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            raise ConfigError(format_path(first.get("loc", ())), first.get("msg", str(exc))) from exc

    def dump_data(self, config: SimulationConfig) -> dict[str, Any]:
        payload = config.model_dump(mode="json", by_alias=True, exclude_none=True)
        return {"version": self.SUPPORTED_VERSION, **payload}

    def save(self, config: SimulationConfig, path: str) -> None:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = self.dump_data(config)
        if output_path.suffix.lower() in {".yaml", ".yml"}:
            output_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        else:
            output_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    @staticmethod
    def _read(path: str) -> dict[str, Any]:
        input_path = Path(path)
        if not input_path.exists():
            raise ConfigError("<root>", f"config file not found: {path}")

        text = input_path.read_text(encoding="utf-8")
        try:
            if input_path.suffix.lower() in {".yaml", ".yml"}:
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError("<root>", f"invalid config syntax: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("<root>", "config root must be object")
        return data

    def _normalize(self, payload: dict[str, Any]) -> dict[str, Any]:
        normalized = json.loads(json.dumps(payload))
        # Editor layout metadata never reaches the model.
        normalized.pop("uiLayout", None)
        version = str(normalized.get("version", self.SUPPORTED_VERSION))
        if version != self.SUPPORTED_VERSION:
            raise ConfigError("version", f"unsupported config version '{version}'")

        taskset = normalized.get("taskset")
        if isinstance(taskset, dict):
            tasks = taskset.get("tasks", [])
            if not isinstance(tasks, list):
                raise ConfigError("taskset.tasks", "must be list")
            for task in tasks:
                if isinstance(task, dict):
                    task.setdefault("kind", taskset.get("taskModel"))
        return normalized

    @staticmethod
    def _validate_schema(payload: dict[str, Any]) -> None:
        validator = jsonschema.Draft202012Validator(CONFIG_SCHEMA)
        errors = sorted(validator.iter_errors(payload), key=lambda err: [str(part) for part in err.path])
        if not errors:
            return
        first = errors[0]
        raise ConfigError(format_path(first.path), f"schema validation failed: {first.message}")
