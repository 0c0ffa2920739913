"""One-off, user-triggered application to a single vacancy (no pacing)."""
from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
from typing import Callable, MutableMapping

from hh_apply_bot.cancel import Cancelled, CancelToken, wait
from hh_apply_bot.config import BotConfig
from hh_apply_bot.errors import ConfigError, FailureKind
from hh_apply_bot.guard import MANUAL, ActivityGuard
from hh_apply_bot.log import get_logger
from hh_apply_bot.models import ApplyStatus, Vacancy
from hh_apply_bot.sources.base import JobBoard
from hh_apply_bot.submission import submit_application

log = get_logger(__name__)

SUCCESS_DISPLAY = 1.5
ERROR_DISPLAY = 3.0

# The search query is only needed by the bot loop.
MANUAL_REQUIRED: tuple[str, ...] = ("access_token", "groq_api_key", "resume_id", "user_name")

StatusListener = Callable[[str, ApplyStatus], None]


@dataclass
class ManualApplyResult:
    vacancy_id: str
    transitions: list[ApplyStatus] = field(default_factory=lambda: [ApplyStatus.IDLE])
    error: str | None = None
    captcha_url: str | None = None

    @property
    def ok(self) -> bool:
        return ApplyStatus.SUCCESS in self.transitions

    @property
    def status(self) -> ApplyStatus:
        return self.transitions[-1]


class ManualApplyFlow:
    def __init__(
        self,
        board: JobBoard,
        assistant,
        *,
        guard: ActivityGuard,
        delay: Callable[[float, CancelToken], None] = wait,
        success_display: float = SUCCESS_DISPLAY,
        error_display: float = ERROR_DISPLAY,
    ) -> None:
        self.board = board
        self.assistant = assistant
        self.guard = guard
        self.delay = delay
        self.success_display = success_display
        self.error_display = error_display

    def _linger(self, seconds: float, cancel: CancelToken) -> None:
        # A cancelled display delay just ends early; the outcome is already decided.
        with suppress(Cancelled):
            self.delay(seconds, cancel)

    def apply(
        self,
        vacancy: Vacancy,
        config: BotConfig,
        *,
        cancel: CancelToken | None = None,
        visible: MutableMapping[str, Vacancy] | None = None,
        on_status: StatusListener | None = None,
    ) -> ManualApplyResult:
        """Apply to *vacancy* right away.

        Raises ``ConfigError`` when credentials are missing and ``BusyError``
        while a bot session or another manual apply is in progress. On success
        the vacancy is removed from *visible* after a short display delay; on
        failure the error is returned and the status falls back to IDLE.
        """
        missing = config.missing(MANUAL_REQUIRED)
        if missing:
            raise ConfigError(missing)
        cancel = cancel or CancelToken()
        result = ManualApplyResult(vacancy_id=vacancy.id)

        def status(value: ApplyStatus) -> None:
            result.transitions.append(value)
            if on_status is not None:
                on_status(vacancy.id, value)

        with self.guard.hold(MANUAL):
            failure = submit_application(
                self.board, self.assistant, vacancy, config, cancel=cancel, on_status=status,
            )

        if failure is None:
            status(ApplyStatus.SUCCESS)
            log.info("Manual application sent: %s (%s)", vacancy.name, vacancy.id)
            self._linger(self.success_display, cancel)
            if visible is not None:
                visible.pop(vacancy.id, None)
            return result

        result.error = failure.message
        if failure.kind is FailureKind.CAPTCHA:
            result.captcha_url = failure.captcha_url
        status(ApplyStatus.ERROR)
        log.warning("Manual application to %s failed: %s", vacancy.id, failure.message)
        self._linger(self.error_display, cancel)
        status(ApplyStatus.IDLE)
        return result
