"""
reqcheck — serialized verification event pipeline

File: src/reqcheck/events/pipeline.py
Last updated: 2026-10-18

Purpose
- Deliver verification lifecycle events to the spec mutator and subscribers in publish order.

Functional requirements
- ``publish`` is non-blocking: it enqueues and, when idle, starts the single drain loop.
- At most one drain loop runs per pipeline; it exits once the queue is empty.
- ``COMPLETE`` events persist status through the mutator; ``ERROR`` events only log.
- Handler failures are recorded and logged; they never stop the drain loop.

Non-functional requirements
- One structured log line per processed event.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from reqcheck.domain.events import EventType, VerificationEvent

Subscriber = Callable[[VerificationEvent], object]

_DEFAULT_HISTORY_SIZE = 4096
_DEFAULT_ERROR_BUFFER = 256


class StatusWriter(Protocol):
    def apply_status(self, spec_path: Any, requirement_id: str, passed: bool) -> bool: ...


@dataclass(frozen=True, slots=True)
class DispatchError:
    """Handler failure captured without interrupting the drain loop."""

    stage: str
    requirement_id: str
    event_type: str
    target: str
    error_type: str
    message: str


class EventPipeline:
    """Single-consumer FIFO of verification events.

    The drain loop runs on a daemon thread owned by this instance; the draining flag
    and the queue share one lock so a publish racing with loop exit never strands
    an event.
    """

    def __init__(
        self,
        *,
        status_writer: StatusWriter | None = None,
        history_size: int = _DEFAULT_HISTORY_SIZE,
        logger: Any | None = None,
    ) -> None:
        if history_size <= 0:
            raise ValueError("history_size must be > 0")
        self._status_writer = status_writer
        self._queue: deque[VerificationEvent] = deque()
        self._processed: deque[VerificationEvent] = deque(maxlen=history_size)
        self._dispatch_errors: deque[DispatchError] = deque(maxlen=_DEFAULT_ERROR_BUFFER)
        self._subscribers: dict[int, Subscriber] = {}
        self._next_token = 1
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._draining = False
        self._drain_count = 0
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def processed(self) -> tuple[VerificationEvent, ...]:
        """Events already handled, in processing order."""

        with self._lock:
            return tuple(self._processed)

    @property
    def is_draining(self) -> bool:
        with self._lock:
            return self._draining

    @property
    def drain_count(self) -> int:
        """Number of drain loops started so far."""

        with self._lock:
            return self._drain_count

    def dispatch_errors(self) -> tuple[DispatchError, ...]:
        with self._lock:
            return tuple(self._dispatch_errors)

    def subscribe(self, callback: Subscriber) -> int:
        if not callable(callback):
            raise ValueError("callback must be callable")
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
        return token

    def unsubscribe(self, token: int) -> bool:
        with self._lock:
            return self._subscribers.pop(token, None) is not None

    def publish(self, event: VerificationEvent) -> None:
        if not isinstance(event, VerificationEvent):
            raise TypeError("event must be a VerificationEvent")
        with self._lock:
            self._queue.append(event)
            if self._draining:
                return
            self._draining = True
            self._drain_count += 1
        worker = threading.Thread(
            target=self._drain,
            name="reqcheck-event-drain",
            daemon=True,
        )
        try:
            worker.start()
        except RuntimeError:
            with self._lock:
                self._draining = False
                self._idle.notify_all()
            raise

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until the queue is empty and no drain loop runs."""

        with self._idle:
            return self._idle.wait_for(
                lambda: not self._draining and not self._queue,
                timeout=timeout,
            )

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._queue:
                    self._draining = False
                    self._idle.notify_all()
                    return
                event = self._queue.popleft()
            self._process(event)

    def _process(self, event: VerificationEvent) -> None:
        self._log_event(event)

        if (
            event.type is EventType.COMPLETE
            and event.result is not None
            and event.spec_path is not None
            and self._status_writer is not None
        ):
            try:
                self._status_writer.apply_status(
                    event.spec_path, event.requirement_id, event.result
                )
            except Exception as exc:  # noqa: BLE001
                self._record_error("status_writer", event, type(self._status_writer).__name__, exc)

        with self._lock:
            subscribers = tuple(self._subscribers.values())
        for callback in subscribers:
            try:
                callback(event)
            except Exception as exc:  # noqa: BLE001
                self._record_error("subscriber", event, _callback_name(callback), exc)

        with self._lock:
            self._processed.append(event)

    def _log_event(self, event: VerificationEvent) -> None:
        payload = event.to_dict()
        if event.type is EventType.ERROR:
            self._logger.error("verification_event", **payload)
        else:
            self._logger.info("verification_event", **payload)

    def _record_error(
        self,
        stage: str,
        event: VerificationEvent,
        target: str,
        exc: Exception,
    ) -> None:
        error = DispatchError(
            stage=stage,
            requirement_id=event.requirement_id,
            event_type=event.type.value,
            target=target,
            error_type=exc.__class__.__name__,
            message=str(exc),
        )
        with self._lock:
            self._dispatch_errors.append(error)
        self._logger.warning(
            "event_handler_failed",
            stage=stage,
            target=target,
            requirement_id=event.requirement_id,
            error_type=error.error_type,
            error=error.message,
        )


def _callback_name(callback: object) -> str:
    qualname = getattr(callback, "__qualname__", None)
    if isinstance(qualname, str):
        return qualname
    return type(callback).__name__


__all__ = ["DispatchError", "EventPipeline", "StatusWriter", "Subscriber"]
