"""Background simulation worker for a PyQt front end."""

from __future__ import annotations

from PyQt6.QtCore import QThread, pyqtSignal

from rtheter_sim.core import RunHandle, SimulationSession
from rtheter_sim.errors import SimulationError
from rtheter_sim.io import ConfigLoader
from rtheter_sim.model import RunState


class SimulationWorker(QThread):
    """Submit one run and re-emit its message stream as Qt signals.

    Exactly one of ``finished_result``, ``failed`` or ``stopped`` is emitted
    per worker.
    """

    progress = pyqtSignal(dict)
    finished_result = pyqtSignal(dict)
    failed = pyqtSignal(str, str)
    stopped = pyqtSignal(list)

    def __init__(self, config_text: str, session: SimulationSession | None = None) -> None:
        super().__init__()
        self._config_text = config_text
        self._session = session or SimulationSession()
        self._handle: RunHandle | None = None
        self._stop_requested = False

    def stop(self) -> None:
        self._stop_requested = True
        if self._handle is not None:
            self._handle.cancel()

    def run(self) -> None:
        try:
            config = ConfigLoader().load_text(self._config_text)
            self._handle = self._session.submit(config)
        except SimulationError as exc:
            self.failed.emit(exc.kind, exc.message)
            return

        if self._stop_requested:
            self._handle.cancel()

        for message in self._handle.messages():
            if message.kind == "progress" and message.progress is not None:
                self.progress.emit(message.progress.model_dump(mode="json", by_alias=True))
            elif message.state == RunState.COMPLETED and message.result is not None:
                self.finished_result.emit(message.result.to_payload())
            elif message.state == RunState.FAILED:
                error = message.error
                self.failed.emit(
                    error.kind if error is not None else "engine_failure",
                    error.message if error is not None else "simulation failed",
                )
            elif message.state == RunState.STOPPED:
                self.stopped.emit(list(message.logs))
