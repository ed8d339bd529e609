"""
Live progress channel

Keeps the status lines of each run in memory and fans out events to
subscribed listeners (e.g. a console printer or a web socket bridge).
Publishing never blocks or fails the caller: listener errors are logged
and dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """
    A progress notification

    kind is one of "append", "completed", "activity_started",
    "activity_ended".
    """
    kind: str
    run_id: str | None = None
    message: str | None = None
    activity_id: str | None = None
    display_name: str | None = None
    status: str | None = None
    test_type: str | None = None


ProgressListener = Callable[[ProgressEvent], None]


class ProgressChannel:
    """
    In-memory progress store with best-effort event fan-out

    At most max_runs runs are kept; starting a run beyond that drops the
    oldest completed runs.
    """

    def __init__(self, max_runs: int = 100) -> None:
        self.max_runs = max_runs
        self._lines: dict[str, list[str]] = {}
        self._completed: dict[str, str | None] = {}
        self._listeners: list[ProgressListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """
        Register a listener

        Returns:
            A callable that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, event: ProgressEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.warning("Progress listener failed on %s event", event.kind, exc_info=True)

    def start(self, run_id: str | int) -> None:
        key = str(run_id)
        with self._lock:
            self._lines.pop(key, None)
            self._lines[key] = []
            self._completed.pop(key, None)
            self._evict_completed()

    def _evict_completed(self) -> None:
        for key in list(self._completed):
            if len(self._lines) <= self.max_runs:
                return
            self._completed.pop(key)
            self._lines.pop(key, None)

    def clear(self, run_id: str | int) -> None:
        """Forget the lines and result of a run"""
        key = str(run_id)
        with self._lock:
            self._lines.pop(key, None)
            self._completed.pop(key, None)

    def append(self, run_id: str | int, message: str) -> None:
        key = str(run_id)
        with self._lock:
            self._lines.setdefault(key, []).append(message)
        logger.info("[%s] %s", key, message)
        self._publish(ProgressEvent("append", run_id=key, message=message))

    def lines(self, run_id: str | int) -> list[str]:
        with self._lock:
            return list(self._lines.get(str(run_id), []))

    def mark_completed(self, run_id: str | int, result: str | None = None) -> None:
        key = str(run_id)
        with self._lock:
            self._completed[key] = result
        logger.info("[%s] completed: %s", key, result)
        self._publish(ProgressEvent("completed", run_id=key, message=result))

    def is_completed(self, run_id: str | int) -> bool:
        with self._lock:
            return str(run_id) in self._completed

    def result(self, run_id: str | int) -> str | None:
        with self._lock:
            return self._completed.get(str(run_id))

    def activity_started(
        self,
        display_name: str,
        status: str,
        activity_id: str | None = None,
        test_type: str = "question",
    ) -> str:
        """
        Announce that a model/agent started working

        Returns:
            The activity id to pass to activity_ended
        """
        activity_id = activity_id or f"agent_{display_name}_{time.time_ns()}"
        self._publish(
            ProgressEvent(
                "activity_started",
                activity_id=activity_id,
                display_name=display_name,
                status=status,
                test_type=test_type,
            )
        )
        return activity_id

    def activity_ended(self, activity_id: str) -> None:
        self._publish(ProgressEvent("activity_ended", activity_id=activity_id))
