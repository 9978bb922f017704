"""Dispatch policy registry and factory."""

from __future__ import annotations

from collections.abc import Callable

from .base import IDispatchPolicy
from .edf import EDFPolicy
from .rm import RMPolicy


PolicyFactory = Callable[..., IDispatchPolicy]


_REGISTRY: dict[str, PolicyFactory] = {
    "edf": EDFPolicy,
    "earliest_deadline_first": EDFPolicy,
    "rm": RMPolicy,
    "rate_monotonic": RMPolicy,
}


def register_policy(name: str, factory: PolicyFactory) -> None:
    _REGISTRY[name.strip().lower()] = factory


def available_policies() -> list[str]:
    return sorted(_REGISTRY)


def create_policy(name: str, params: dict | None = None) -> IDispatchPolicy:
    key = name.strip().lower()
    if key not in _REGISTRY:
        raise ValueError(f"unknown scheduler {name}")
    return _REGISTRY[key](params or {})
