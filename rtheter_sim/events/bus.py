"""Event bus with sequence assignment."""

from __future__ import annotations

from typing import Callable

from .types import EventType, SimEvent


EventHandler = Callable[[SimEvent], None]


class EventBus:
    """Simple in-process pub/sub event bus with deterministic event ids."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._seq = 0

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def publish(
        self,
        *,
        event_type: EventType,
        time: float,
        job_id: str | None = None,
        task_id: int | None = None,
        segment_id: int | None = None,
        processor_id: int | None = None,
        payload: dict | None = None,
    ) -> SimEvent:
        event = SimEvent(
            event_id=f"evt-{self._seq:08d}",
            seq=self._seq,
            time=time,
            type=event_type,
            job_id=job_id,
            task_id=task_id,
            segment_id=segment_id,
            processor_id=processor_id,
            payload=payload or {},
        )
        self._seq += 1
        for handler in list(self._handlers):
            handler(event)
        return event

    def reset(self) -> None:
        self._seq = 0
        self._handlers.clear()
