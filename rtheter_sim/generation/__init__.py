"""Taskset generation exports."""

from .generator import DEFAULT_LENGTH_RANGE, TasksetGenerator, edge_budget, uunifast

__all__ = ["DEFAULT_LENGTH_RANGE", "TasksetGenerator", "edge_budget", "uunifast"]
