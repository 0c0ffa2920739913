"""Cancellation token and the cancellable wait used at every suspension point."""
from __future__ import annotations

import threading


class Cancelled(Exception):
    """The operation was interrupted by its session's cancellation token."""


class CancelToken:
    """Level-triggered cancellation signal shared by one session or one manual apply.

    Once ``cancel()`` has been called the token stays cancelled. Threads parked
    in :meth:`wait` are woken immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()

    def wait(self, seconds: float) -> None:
        """Sleep for *seconds* unless cancelled first; raise ``Cancelled`` if so."""
        if self._event.wait(timeout=max(seconds, 0.0)):
            raise Cancelled()

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled})"


def wait(seconds: float, cancel: CancelToken | None = None) -> None:
    """Cancellable delay.

    Returns after *seconds*, or raises :class:`Cancelled` as soon as *cancel*
    is raised. An already-cancelled token fails immediately without waiting.
    """
    token = cancel if cancel is not None else CancelToken()
    token.raise_if_cancelled()
    token.wait(seconds)
