"""One activity at a time: either the bot loop or a single manual apply."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from hh_apply_bot.errors import BusyError

BOT = "bot"
MANUAL = "manual"


class ActivityGuard:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owner: str | None = None

    @property
    def owner(self) -> str | None:
        with self._lock:
            return self._owner

    def claim(self, owner: str) -> None:
        with self._lock:
            if self._owner is not None:
                raise BusyError(f"Cannot start {owner} activity: {self._owner} activity is in progress")
            self._owner = owner

    def release(self, owner: str) -> None:
        with self._lock:
            if self._owner == owner:
                self._owner = None

    @contextmanager
    def hold(self, owner: str) -> Iterator[None]:
        self.claim(owner)
        try:
            yield
        finally:
            self.release(owner)
