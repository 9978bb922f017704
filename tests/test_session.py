from __future__ import annotations

from pathlib import Path
import threading
import time
from typing import Callable, Optional

import pytest

from rtheter_sim.core import ChannelMessage, ISimEngine, SimulationSession, SlotEngine
from rtheter_sim.errors import GenerationError, RunConflictError, ValidationError
from rtheter_sim.events import SimEvent
from rtheter_sim.io import ConfigLoader
from rtheter_sim.model import RunState, SimulationConfig, SimulationResult


EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def _config(name: str = "dag_user_two_cpu.yaml") -> SimulationConfig:
    return ConfigLoader().load(str(EXAMPLES / name))


class _GatedEngine(ISimEngine):
    """Runs the slot engine only after ``release`` is set; stops on request."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.started = threading.Event()
        self._stop_event = threading.Event()
        self._inner = SlotEngine()

    def build(self, config: SimulationConfig) -> None:
        self._inner.build(config)

    def run(self, *, on_progress=None, on_log=None) -> Optional[SimulationResult]:
        if on_progress is not None:
            on_progress(0, self._inner.total_slices)
        self.started.set()
        while not self.release.wait(timeout=0.01):
            if self._stop_event.is_set():
                return None
        return self._inner.run(on_progress=on_progress, on_log=on_log)

    def stop(self) -> None:
        self._stop_event.set()
        self._inner.stop()

    def reset(self) -> None:
        self._inner.reset()

    def subscribe(self, handler: Callable[[SimEvent], None]) -> None:
        self._inner.subscribe(handler)


class _FailingEngine(_GatedEngine):
    def run(self, *, on_progress=None, on_log=None) -> Optional[SimulationResult]:
        raise RuntimeError("solver exploded")


def _gated_session() -> tuple[SimulationSession, list[_GatedEngine]]:
    engines: list[_GatedEngine] = []

    def factory() -> _GatedEngine:
        engine = _GatedEngine()
        engines.append(engine)
        return engine

    return SimulationSession(engine_factory=factory), engines


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_run_completes_with_single_terminal_message() -> None:
    handle = SimulationSession().submit(_config())
    messages = list(handle.messages(timeout=5.0))

    assert handle.run_id.startswith("run-")
    assert handle.state == RunState.COMPLETED
    terminal = [message for message in messages if message.terminal]
    assert len(terminal) == 1
    assert messages[-1] is terminal[0]
    assert terminal[0].state == RunState.COMPLETED
    assert terminal[0].result is not None
    assert terminal[0].result.is_schedulable
    assert handle.result is terminal[0].result
    assert handle.error is None


def test_progress_is_monotone_and_bounded() -> None:
    handle = SimulationSession().submit(_config())
    snapshots = [m.progress for m in handle.messages(timeout=5.0) if m.kind == "progress"]
    assert snapshots
    values = [snapshot.progress for snapshot in snapshots]
    assert values == sorted(values)
    assert all(0.0 <= value <= 1.0 for value in values)
    assert snapshots[-1].progress == 1.0
    assert all(snapshot.current_slice <= snapshot.total_slices for snapshot in snapshots)
    assert handle.latest_progress == snapshots[-1]


def test_cancel_after_completion_is_benign() -> None:
    handle = SimulationSession().submit(_config())
    assert handle.wait(timeout=5.0) == RunState.COMPLETED

    ack = handle.cancel()
    assert ack.accepted is False
    assert ack.state == RunState.COMPLETED
    assert ack.notice is not None
    assert ack.notice.kind == "cancelled"
    assert handle.state == RunState.COMPLETED
    assert handle.error is None
    assert handle.result is not None


def test_cancel_running_run_stops_without_result() -> None:
    session, engines = _gated_session()
    handle = session.submit(_config())
    assert _wait_until(lambda: bool(engines) and engines[0].started.is_set())

    ack = handle.cancel()
    assert ack.accepted is True
    assert handle.wait(timeout=5.0) == RunState.STOPPED
    assert handle.result is None
    assert handle.error is None
    messages = list(handle.messages(timeout=1.0))
    assert messages[-1].state == RunState.STOPPED
    assert sum(1 for message in messages if message.terminal) == 1
    with pytest.raises(RuntimeError):
        handle.export_trace()


def test_second_submit_while_running_conflicts() -> None:
    session, engines = _gated_session()
    first = session.submit(_config())
    with pytest.raises(RunConflictError) as exc_info:
        session.submit(_config())
    assert exc_info.value.kind == "run_conflict"
    assert session.active is first

    assert _wait_until(lambda: bool(engines))
    engines[0].release.set()
    assert first.wait(timeout=5.0) == RunState.COMPLETED
    assert session.active is None


def test_replace_cancels_previous_run() -> None:
    session, engines = _gated_session()
    first = session.submit(_config())
    assert _wait_until(lambda: bool(engines) and engines[0].started.is_set())

    second = session.submit(_config(), replace=True)
    assert first.state == RunState.STOPPED
    assert second.run_id != first.run_id
    assert session.last_run is second

    assert _wait_until(lambda: len(engines) == 2)
    engines[1].release.set()
    assert second.wait(timeout=5.0) == RunState.COMPLETED


def test_engine_exception_becomes_failed_message() -> None:
    session = SimulationSession(engine_factory=_FailingEngine)
    handle = session.submit(_config())
    messages = list(handle.messages(timeout=5.0))

    assert handle.state == RunState.FAILED
    assert handle.result is None
    assert handle.error is not None
    assert handle.error.kind == "engine_failure"
    assert "solver exploded" in handle.error.message
    assert messages[-1].error is handle.error
    assert any("failed" in line for line in handle.logs)


def test_invalid_config_is_rejected_before_start() -> None:
    payload = ConfigLoader().dump_data(_config())
    payload["hardware"]["processors"][0]["count"] = 0
    session = SimulationSession()
    with pytest.raises(ValidationError) as exc_info:
        session.submit(ConfigLoader().load_data(payload))
    assert exc_info.value.field == "hardware.processors[0].count"
    assert session.last_run is None


def test_generation_error_is_raised_synchronously() -> None:
    config = _config("dag_random.yaml")
    taskset = config.taskset.model_copy(update={"segment_number": 1})
    with pytest.raises(GenerationError):
        SimulationSession().submit(config.model_copy(update={"taskset": taskset}))


def test_random_config_is_materialized_before_run() -> None:
    handle = SimulationSession().submit(_config("suspension_random.yaml"))
    assert len(handle.config.taskset.tasks) == 4
    assert handle.wait(timeout=10.0) == RunState.COMPLETED


def test_late_subscriber_receives_replay() -> None:
    handle = SimulationSession().submit(_config())
    handle.wait(timeout=5.0)
    received: list[ChannelMessage] = []
    handle.subscribe(received.append)
    assert received
    assert received[-1].terminal
    assert sum(1 for message in received if message.terminal) == 1


def test_failing_subscriber_does_not_block_others() -> None:
    session, engines = _gated_session()
    handle = session.submit(_config())

    def broken(message: ChannelMessage) -> None:
        raise ValueError("subscriber bug")

    received: list[ChannelMessage] = []
    assert _wait_until(lambda: bool(engines) and engines[0].started.is_set())
    handle.subscribe(broken)
    handle.subscribe(received.append)
    engines[0].release.set()
    assert handle.wait(timeout=5.0) == RunState.COMPLETED
    assert _wait_until(lambda: bool(received) and received[-1].terminal)


def test_export_trace_after_completion() -> None:
    handle = SimulationSession().submit(_config())
    handle.wait(timeout=5.0)
    lines = handle.export_trace("jsonl").splitlines()
    assert lines
    assert '"JobReleased"' in lines[0]
