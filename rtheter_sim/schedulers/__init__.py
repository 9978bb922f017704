"""Dispatch policy exports."""

from .base import IDispatchPolicy, PriorityPolicy, SlotSnapshot
from .edf import EDFPolicy
from .registry import available_policies, create_policy, register_policy
from .rm import RMPolicy

__all__ = [
    "EDFPolicy",
    "IDispatchPolicy",
    "PriorityPolicy",
    "RMPolicy",
    "SlotSnapshot",
    "available_policies",
    "create_policy",
    "register_policy",
]
