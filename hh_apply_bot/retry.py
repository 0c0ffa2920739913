"""Retry decorator with exponential backoff and cancellable waits."""
from __future__ import annotations

import functools
import logging
import random
from typing import Any, Callable, Tuple, Type

from hh_apply_bot.cancel import Cancelled, CancelToken, wait

logger = logging.getLogger(__name__)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable:
    """Decorator: retries the wrapped function with exponential backoff.

    When the call passes a ``cancel`` keyword holding a :class:`CancelToken`,
    the token is checked before every attempt and the backoff sleeps are
    cancellable. ``Cancelled`` is never retried.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            cancel: CancelToken | None = kwargs.get("cancel")
            last_exc: BaseException | None = None
            for attempt in range(1, max_attempts + 1):
                if cancel is not None:
                    cancel.raise_if_cancelled()
                try:
                    return fn(*args, **kwargs)
                except Cancelled:
                    raise
                except retryable as exc:
                    last_exc = exc
                    if attempt == max_attempts:
                        logger.error(
                            "%s failed after %d attempts: %s",
                            fn.__qualname__,
                            max_attempts,
                            exc,
                        )
                        raise
                    delay = min(
                        base_delay * (backoff_factor ** (attempt - 1)), max_delay
                    )
                    if jitter:
                        delay *= 0.5 + random.random()
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        fn.__qualname__,
                        attempt,
                        max_attempts,
                        exc,
                        delay,
                    )
                    wait(delay, cancel)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator
