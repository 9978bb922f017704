"""Simulation core exports."""

from .engine import SlotEngine, expand_processors
from .interfaces import ISimEngine
from .session import CancelAck, ChannelMessage, RunHandle, SimulationSession

__all__ = [
    "CancelAck",
    "ChannelMessage",
    "ISimEngine",
    "RunHandle",
    "SimulationSession",
    "SlotEngine",
    "expand_processors",
]
