"""Run submission, progress streaming and cancellation."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
import itertools
import logging
import threading
from typing import Callable, Optional

from rtheter_sim.errors import CancelledError, EngineFailure, RunConflictError, SimulationError
from rtheter_sim.generation import TasksetGenerator
from rtheter_sim.model import RunState, SimulationConfig, SimulationProgress, SimulationResult
from rtheter_sim.validation import ConfigValidator

from .engine import SlotEngine
from .interfaces import ISimEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], ISimEngine]
MessageHandler = Callable[["ChannelMessage"], None]

_RUN_IDS = itertools.count(1)


@dataclass(frozen=True, slots=True)
class ChannelMessage:
    """One item of a run's ordered message stream.

    ``kind`` is ``progress`` for snapshots, otherwise the terminal state.
    """

    kind: str
    state: RunState
    progress: Optional[SimulationProgress] = None
    result: Optional[SimulationResult] = None
    error: Optional[SimulationError] = None
    logs: tuple[str, ...] = field(default_factory=tuple)

    @property
    def terminal(self) -> bool:
        return self.kind != "progress"


@dataclass(frozen=True, slots=True)
class CancelAck:
    run_id: str
    state: RunState
    accepted: bool
    notice: Optional[CancelledError] = None


class RunHandle:
    """Caller-side view of one submitted run."""

    def __init__(self, run_id: str, config: SimulationConfig, engine_factory: EngineFactory) -> None:
        self.run_id = run_id
        self.config = config
        self._engine_factory = engine_factory
        self._engine: ISimEngine | None = None
        self._cond = threading.Condition()
        self._state = RunState.IDLE
        self._messages: list[ChannelMessage] = []
        self._handlers: list[MessageHandler] = []
        self._logs: list[str] = []
        self._latest: SimulationProgress | None = None
        self._result: SimulationResult | None = None
        self._error: SimulationError | None = None
        self._cancel_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> RunState:
        with self._cond:
            return self._state

    @property
    def result(self) -> SimulationResult | None:
        with self._cond:
            return self._result

    @property
    def error(self) -> SimulationError | None:
        with self._cond:
            return self._error

    @property
    def logs(self) -> list[str]:
        with self._cond:
            return list(self._logs)

    @property
    def latest_progress(self) -> SimulationProgress | None:
        with self._cond:
            return self._latest

    def subscribe(self, handler: MessageHandler) -> None:
        """Register ``handler``; messages already emitted are replayed first."""
        with self._cond:
            history = list(self._messages)
            self._handlers.append(handler)
        self._deliver_all(history, handler)

    def messages(self, timeout: float | None = None) -> Iterator[ChannelMessage]:
        """Yield every message in order, ending after the terminal one.

        ``timeout`` bounds each wait; a ``TimeoutError`` is raised when no
        message arrives in time.
        """
        index = 0
        while True:
            with self._cond:
                if index >= len(self._messages):
                    if not self._cond.wait_for(lambda: index < len(self._messages), timeout=timeout):
                        raise TimeoutError(f"no message from run {self.run_id} within {timeout}s")
                message = self._messages[index]
            index += 1
            yield message
            if message.terminal:
                return

    def wait(self, timeout: float | None = None) -> RunState:
        with self._cond:
            self._cond.wait_for(lambda: self._state.terminal, timeout=timeout)
            return self._state

    def cancel(self) -> CancelAck:
        """Request a stop; a no-op acknowledgment once the run has terminated."""
        with self._cond:
            state = self._state
            if state.terminal:
                return CancelAck(
                    run_id=self.run_id,
                    state=state,
                    accepted=False,
                    notice=CancelledError(f"run {self.run_id} already {state.value}; cancel ignored"),
                )
            self._cancel_event.set()
            engine = self._engine
        if engine is not None:
            engine.stop()
        logger.info("cancellation requested for run %s", self.run_id)
        return CancelAck(run_id=self.run_id, state=state, accepted=True)

    def export_trace(self, fmt: str = "jsonl") -> str:
        from rtheter_sim.io.trace import export_trace

        result = self.result
        if result is None:
            raise RuntimeError(f"run {self.run_id} has no result to export (state={self.state.value})")
        return export_trace(result, fmt=fmt)

    def start(self) -> None:
        with self._cond:
            if self._state != RunState.IDLE:
                raise RuntimeError(f"run {self.run_id} was already started")
            self._state = RunState.RUNNING
        self._thread = threading.Thread(target=self._run, name=f"simulation-{self.run_id}", daemon=True)
        self._thread.start()

    def _append_log(self, line: str) -> None:
        with self._cond:
            self._logs.append(line)

    def _on_progress(self, current: int, total: int) -> None:
        fraction = current / total if total > 0 else 1.0
        with self._cond:
            previous = self._latest
            if previous is not None:
                fraction = max(fraction, previous.progress)
                current = max(current, previous.current_slice)
            snapshot = SimulationProgress(
                progress=min(1.0, fraction),
                current_slice=min(current, total),
                total_slices=total,
                status=RunState.RUNNING.value,
                logs=list(self._logs),
            )
            self._latest = snapshot
        self._emit(ChannelMessage(kind="progress", state=RunState.RUNNING, progress=snapshot))

    def _run(self) -> None:
        try:
            if self._cancel_event.is_set():
                self._append_log("cancelled before start")
                self._finish(RunState.STOPPED)
                return
            engine = self._engine_factory()
            with self._cond:
                self._engine = engine
            engine.build(self.config)
            if self._cancel_event.is_set():
                engine.stop()
            self._append_log(
                f"run {self.run_id} started: {len(self.config.taskset.tasks)} tasks, scheduler={self.config.scheduler}"
            )
            result = engine.run(on_progress=self._on_progress, on_log=self._append_log)
        except SimulationError as exc:
            self._finish(RunState.FAILED, error=exc)
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("run %s failed", self.run_id)
            self._finish(RunState.FAILED, error=EngineFailure(f"{type(exc).__name__}: {exc}"))
            return

        if result is None:
            self._finish(RunState.STOPPED)
        else:
            self._append_log(
                f"run {self.run_id} completed: schedulable={result.is_schedulable}, "
                f"misses={len(result.deadline_misses)}"
            )
            self._finish(RunState.COMPLETED, result=result)

    def _finish(
        self,
        state: RunState,
        *,
        result: SimulationResult | None = None,
        error: SimulationError | None = None,
    ) -> None:
        with self._cond:
            if error is not None:
                self._logs.append(f"run {self.run_id} failed: {error.message}")
            self._state = state
            self._result = result
            self._error = error
            message = ChannelMessage(
                kind=state.value,
                state=state,
                progress=self._latest,
                result=result,
                error=error,
                logs=tuple(self._logs),
            )
            # State and terminal message become visible together.
            handlers = self._record(message)
        logger.info("run %s finished with state %s", self.run_id, state.value)
        self._deliver(message, handlers)

    def _record(self, message: ChannelMessage) -> list[MessageHandler]:
        self._messages.append(message)
        self._cond.notify_all()
        return list(self._handlers)

    def _emit(self, message: ChannelMessage) -> None:
        with self._cond:
            handlers = self._record(message)
        self._deliver(message, handlers)

    def _deliver_all(self, messages: list[ChannelMessage], handler: MessageHandler) -> None:
        for message in messages:
            self._deliver(message, [handler])

    def _deliver(self, message: ChannelMessage, handlers: list[MessageHandler]) -> None:
        for handler in handlers:
            try:
                handler(message)
            except Exception:  # noqa: BLE001
                logger.exception("message handler failed for run %s", self.run_id)


class SimulationSession:
    """Submit runs one at a time for a single caller."""

    def __init__(
        self,
        engine_factory: EngineFactory = SlotEngine,
        *,
        validator: ConfigValidator | None = None,
        generator: TasksetGenerator | None = None,
    ) -> None:
        self._engine_factory = engine_factory
        self._validator = validator or ConfigValidator()
        self._generator = generator or TasksetGenerator()
        self._lock = threading.Lock()
        self._current: RunHandle | None = None

    @property
    def active(self) -> RunHandle | None:
        with self._lock:
            current = self._current
        if current is not None and not current.state.terminal:
            return current
        return None

    @property
    def last_run(self) -> RunHandle | None:
        with self._lock:
            return self._current

    def submit(self, config: SimulationConfig, *, replace: bool = False) -> RunHandle:
        """Validate, materialize and start a run; return immediately.

        Validation and generation errors are raised here, before any run
        starts. A second submit while a run is active raises
        ``RunConflictError`` unless ``replace`` cancels and awaits it first.
        """
        self._validator.validate(config)
        materialized = self._generator.materialize(config)

        with self._lock:
            previous = self._current
            if previous is not None and not previous.state.terminal:
                if not replace:
                    raise RunConflictError(
                        f"run {previous.run_id} is still {previous.state.value}; cancel it or submit with replace"
                    )
                previous.cancel()
                previous.wait()
            handle = RunHandle(f"run-{next(_RUN_IDS):04d}", materialized, self._engine_factory)
            self._current = handle
            handle.start()
        logger.info("submitted %s", handle.run_id)
        return handle
