"""Append-only bot event log, mirrored into the Python log."""
from __future__ import annotations

import itertools
import logging
import threading
from datetime import datetime
from typing import Callable

from hh_apply_bot.log import get_logger
from hh_apply_bot.models import LogEvent, LogType

log = get_logger("hh_apply_bot.bot")

Listener = Callable[[LogEvent], None]

_LEVELS: dict[LogType, int] = {
    LogType.INFO: logging.INFO,
    LogType.SUCCESS: logging.INFO,
    LogType.PAUSE: logging.INFO,
    LogType.SPECIAL: logging.WARNING,
    LogType.ERROR: logging.ERROR,
}


class EventLog:
    def __init__(self) -> None:
        self._events: list[LogEvent] = []
        self._listeners: list[Listener] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def emit(self, message: str, kind: LogType = LogType.INFO, *, fatal: bool = False) -> LogEvent:
        with self._lock:
            event = LogEvent(
                id=next(self._ids),
                timestamp=datetime.now(),
                kind=kind,
                message=message,
                fatal=fatal,
            )
            self._events.append(event)
            listeners = list(self._listeners)
        log.log(logging.CRITICAL if fatal else _LEVELS[kind], "%s", message)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                log.exception("Event listener %r failed", listener)
        return event

    def events(self) -> tuple[LogEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
