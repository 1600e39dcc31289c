"""Single-flight, cancellable execution of named steps with streamed output."""

from __future__ import annotations

import queue
import threading
import time
from typing import Iterator, Mapping

import orjson

from content_sync.core.errors import ContentSyncError, RunnerBusyError, SyncCancelled, UnknownStepError
from content_sync.core.logging import get_logger, session_logger
from content_sync.core.metrics import RUNNER_BUSY, SYNC_DURATION, SYNC_RUNS
from content_sync.sync.pipeline import Step, StepContext
from content_sync.sync.types import RunStatus, SyncSummary
from content_sync.utils.ids import new_id

logger = get_logger(__name__)

STATUS_PREFIX = "STATUS "

_DONE = object()


class SyncSession:
    """One execution of a step. Lines flow producer -> bounded queue -> ``lines()``.

    A full queue blocks the producer until the reader catches up. Once the
    session is cancelled, or the reader has gone away, lines that do not fit
    are dropped so the step can reach its next cancellation check. The
    terminal status line reaches any reader that is still there, even when
    it no longer fits in the queue.
    """

    def __init__(self, step_name: str, queue_size: int = 256) -> None:
        self.run_id = new_id("run")
        self.step_name = step_name
        self.status = RunStatus.IDLE
        self.summary = SyncSummary()
        self.error: str | None = None
        self.cancel_event = threading.Event()
        self._queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
        self._abandoned = threading.Event()
        self._finished = threading.Event()
        self._terminal: str | None = None

    def emit(self, line: str) -> None:
        self._put(line)

    def cancel(self) -> None:
        self.cancel_event.set()

    def lines(self) -> Iterator[str]:
        """Yield output lines, ending with the terminal status line."""
        drained = False
        seen_terminal = False
        try:
            while True:
                try:
                    item = self._queue.get(timeout=0.1)
                except queue.Empty:
                    if not self._finished.is_set() or not self._queue.empty():
                        continue
                    # The terminal line did not fit in the queue.
                    if not seen_terminal and self._terminal is not None:
                        yield self._terminal
                    drained = True
                    return
                if item is _DONE:
                    drained = True
                    return
                seen_terminal = seen_terminal or item == self._terminal
                yield str(item)
        finally:
            if not drained:
                logger.warning("Reader left sync session %s early; cancelling", self.run_id)
                self._abandoned.set()
                self.cancel()

    def wait(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)

    def status_payload(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            **self.summary.to_dict(),
            "run_id": self.run_id,
            "step": self.step_name,
            "error": self.error,
        }

    def status_line(self) -> str:
        return STATUS_PREFIX + orjson.dumps(self.status_payload()).decode("utf-8")

    def _finish(self, status: RunStatus) -> str:
        self.status = status
        line = self._terminal = self.status_line()
        for item in (line, _DONE):
            try:
                self._queue.put_nowait(item)
            except queue.Full:
                break
        self._finished.set()
        return line

    def _put(self, item: object) -> None:
        while True:
            try:
                self._queue.put(item, timeout=0.1)
                return
            except queue.Full:
                if self._abandoned.is_set() or self.cancel_event.is_set():
                    return


class SyncRunner:
    """Runs at most one session per process; a second ``start`` fails fast."""

    def __init__(self, steps: Mapping[str, Step], queue_size: int = 256) -> None:
        self._steps = dict(steps)
        self._queue_size = queue_size
        self._lock = threading.Lock()
        self._active: SyncSession | None = None
        self.last_run: str | None = None

    @property
    def step_names(self) -> list[str]:
        return sorted(self._steps)

    @property
    def active(self) -> SyncSession | None:
        with self._lock:
            return self._active

    def start(self, step_name: str) -> SyncSession:
        step = self._steps.get(step_name)
        if step is None:
            raise UnknownStepError(step_name)
        session = SyncSession(step_name, queue_size=self._queue_size)
        with self._lock:
            if self._active is not None:
                raise RunnerBusyError(self._active.step_name)
            self._active = session
            session.status = RunStatus.RUNNING
        RUNNER_BUSY.set(1)
        logger.info("Starting sync step %s", step_name, extra={"ctx_run_id": session.run_id, "ctx_step": step_name})
        thread = threading.Thread(
            target=self._execute,
            args=(session, step),
            name=f"sync-{step_name}",
            daemon=True,
        )
        thread.start()
        return session

    def cancel(self) -> bool:
        with self._lock:
            session = self._active
        if session is None:
            return False
        session.cancel()
        return True

    def health(self) -> dict[str, object]:
        with self._lock:
            session = self._active
        return {
            "ok": True,
            "busy": session is not None,
            "step": session.step_name if session else None,
            "run_id": session.run_id if session else None,
            "last_run": self.last_run,
        }

    def _execute(self, session: SyncSession, step: Step) -> None:
        log = session_logger(__name__, session.run_id, session.step_name)
        ctx = StepContext(emit=session.emit, cancel=session.cancel_event, summary=session.summary)
        started = time.monotonic()
        status = RunStatus.FAILED
        session.emit(f"Running {session.step_name} (run {session.run_id})")
        try:
            step(ctx)
            status = RunStatus.SUCCEEDED
        except SyncCancelled:
            status = RunStatus.CANCELLED
            session.emit("Cancelled; stopped between units of work")
        except ContentSyncError as exc:
            session.error = str(exc)
            session.emit(f"Error: {exc}")
            log.error("Sync step failed: %s", exc)
        except Exception as exc:
            session.error = str(exc)
            session.emit(f"Error: {exc}")
            log.exception("Sync step crashed")
        finally:
            SYNC_RUNS.labels(step=session.step_name, status=status.value).inc()
            SYNC_DURATION.labels(step=session.step_name).observe(time.monotonic() - started)
            session.status = status
            self.last_run = session.status_line()
            # The claim is released before the terminal line is queued.
            with self._lock:
                self._active = None
            RUNNER_BUSY.set(0)
            session._finish(status)
            log.info("Sync step finished: %s", status.value)


def parse_status_line(line: str) -> dict[str, object] | None:
    """Decode a terminal line produced by ``SyncSession.status_line``."""
    if not line.startswith(STATUS_PREFIX):
        return None
    return orjson.loads(line[len(STATUS_PREFIX) :])


__all__ = ["SyncRunner", "SyncSession", "parse_status_line", "STATUS_PREFIX"]
