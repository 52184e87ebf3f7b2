"""Duplex message endpoint between the agent and its controller."""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .exceptions import ProtocolError

LOGGER = logging.getLogger(__name__)

# Message tags
SETUP = "setup"
HOOKS = "hooks"
DEX = "dex"
RUNDATA = "rundata"

MessageHandler = Callable[[Any], None]
OutgoingEvent = Tuple[Dict[str, Any], Optional[bytes]]

__all__ = [
    "SETUP",
    "HOOKS",
    "DEX",
    "RUNDATA",
    "MessageHandler",
    "ProtocolChannel",
    "QueueChannel",
]


@runtime_checkable
class ProtocolChannel(Protocol):
    """Agent side of the controller link.

    Messages with the same tag are delivered in send order; nothing is
    promised across tags.
    """

    def send_event(
        self,
        event_id: str,
        payload: Mapping[str, Any] | None = None,
        data: bytes | None = None,
    ) -> None: ...

    def await_message(self, name: str, timeout: float | None = None) -> Any: ...

    def on_message(self, name: str, handler: MessageHandler) -> None: ...


class QueueChannel:
    """In-process :class:`ProtocolChannel` backed by thread-safe queues.

    The agent uses the :class:`ProtocolChannel` methods.  The controller end
    calls :meth:`post` with ``{"type": tag, "payload": ...}`` records and
    drains agent events with :meth:`receive`.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending: Dict[str, Deque[Any]] = {}
        self._handlers: Dict[str, List[MessageHandler]] = {}
        self._dispatch_locks: Dict[str, threading.RLock] = {}
        self._outbox: "queue.Queue[OutgoingEvent]" = queue.Queue()

    # ------------------------------------------------------------------
    # Agent side
    # ------------------------------------------------------------------
    def send_event(
        self,
        event_id: str,
        payload: Mapping[str, Any] | None = None,
        data: bytes | None = None,
    ) -> None:
        message: Dict[str, Any] = {"id": event_id}
        if payload:
            message.update(payload)
        LOGGER.debug("-> %s", event_id)
        self._outbox.put((message, data))

    def await_message(self, name: str, timeout: float | None = None) -> Any:
        with self._cond:
            if not self._cond.wait_for(lambda: bool(self._pending.get(name)), timeout):
                raise ProtocolError(f"timed out waiting for {name!r}")
            return self._pending[name].popleft()

    def on_message(self, name: str, handler: MessageHandler) -> None:
        with self._dispatch_lock(name):
            with self._cond:
                self._handlers.setdefault(name, []).append(handler)
                backlog = self._pending.pop(name, deque())
            for payload in backlog:
                handler(payload)

    def _dispatch_lock(self, name: str) -> threading.RLock:
        # Held while handlers for ``name`` run, keeping per-tag delivery FIFO.
        with self._cond:
            return self._dispatch_locks.setdefault(name, threading.RLock())

    # ------------------------------------------------------------------
    # Controller side
    # ------------------------------------------------------------------
    def post(self, message: Mapping[str, Any]) -> None:
        """Deliver a controller message to the agent."""

        name = message.get("type")
        if not isinstance(name, str):
            raise ProtocolError(f"message without a type tag: {message!r}")
        payload = message.get("payload")
        LOGGER.debug("<- %s", name)
        with self._dispatch_lock(name):
            with self._cond:
                handlers = list(self._handlers.get(name, ()))
                if not handlers:
                    self._pending.setdefault(name, deque()).append(payload)
                    self._cond.notify_all()
                    return
            for handler in handlers:
                handler(payload)

    def receive(self, timeout: float | None = None) -> OutgoingEvent:
        """Return the next agent event; raise :class:`ProtocolError` on timeout."""

        try:
            return self._outbox.get(timeout=timeout)
        except queue.Empty as exc:
            raise ProtocolError("no event received from the agent") from exc

    def drain(self) -> List[OutgoingEvent]:
        events: List[OutgoingEvent] = []
        while True:
            try:
                events.append(self._outbox.get_nowait())
            except queue.Empty:
                return events
