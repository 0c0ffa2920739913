"""
Auto-apply bot loop.

One session runs on one worker thread:
search page → for each ranked vacancy: cover letter → apply → pacing pause →
next page, or a long pause and a fresh pass from page 0 once every page is done.

Every wait goes through a cancellable delay and the session token is checked
before each network call, so ``stop()`` takes effect at the next suspension
point.
"""
from __future__ import annotations

import random
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from hh_apply_bot.cancel import Cancelled, CancelToken, wait
from hh_apply_bot.classifier import VerdictKind, classify
from hh_apply_bot.config import BotConfig
from hh_apply_bot.errors import ConfigError, PipelineError
from hh_apply_bot.events import EventLog, Listener
from hh_apply_bot.guard import BOT, ActivityGuard
from hh_apply_bot.log import get_logger
from hh_apply_bot.models import (
    ApplyStatus, BotStatus, LogType, SessionSnapshot, StopReason, Vacancy,
)
from hh_apply_bot.pipeline import SearchPipeline
from hh_apply_bot.sources.base import JobBoard
from hh_apply_bot.submission import submit_application

log = get_logger(__name__)

PACING_RANGE: tuple[float, float] = (10.0, 45.0)
ITEM_COOLDOWN = 5.0
RETRY_COOLDOWN = 60.0
EXHAUSTED_COOLDOWN = 300.0

Delay = Callable[[float, CancelToken], None]


class StepKind(str, Enum):
    RETRY = "retry"
    ADVANCE_PAGE = "advance_page"
    RESET_AND_PAUSE = "reset_and_pause"
    TERMINATE = "terminate"


@dataclass(frozen=True)
class Step:
    """What the main loop does after a cycle."""

    kind: StepKind
    reason: StopReason | None = None

    @classmethod
    def terminate(cls, reason: StopReason) -> Step:
        return cls(StepKind.TERMINATE, reason)


RETRY = Step(StepKind.RETRY)
ADVANCE_PAGE = Step(StepKind.ADVANCE_PAGE)
RESET_AND_PAUSE = Step(StepKind.RESET_AND_PAUSE)


class BotSession:
    """Run-scoped state of one bot session. Written only by the bot thread."""

    def __init__(self, config: BotConfig, target: int | None = None) -> None:
        self.config = config
        self.target = target
        self.status = BotStatus.IDLE
        self.sent = 0
        self.page = 0
        self.cancel = CancelToken()
        self.events = EventLog()
        self.action_required: str | None = None
        self.stop_reason: StopReason | None = None
        self._lock = threading.Lock()
        self._done = threading.Event()

    @property
    def target_reached(self) -> bool:
        return self.target is not None and self.sent >= self.target

    @property
    def active(self) -> bool:
        return self.status in (BotStatus.RUNNING, BotStatus.STOPPING)

    def emit(self, message: str, kind: LogType = LogType.INFO, *, fatal: bool = False) -> None:
        self.events.emit(message, kind, fatal=fatal)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the session is STOPPED; False on timeout."""
        return self._done.wait(timeout)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                status=self.status,
                target=self.target,
                sent=self.sent,
                page=self.page,
                action_required=self.action_required,
                stop_reason=self.stop_reason,
                events=self.events.events(),
            )


class ApplicationOrchestrator:
    def __init__(
        self,
        board: JobBoard,
        assistant,
        *,
        guard: ActivityGuard | None = None,
        delay: Delay = wait,
        rng: random.Random | None = None,
        pacing: tuple[float, float] = PACING_RANGE,
        item_cooldown: float = ITEM_COOLDOWN,
        retry_cooldown: float = RETRY_COOLDOWN,
        exhausted_cooldown: float = EXHAUSTED_COOLDOWN,
    ) -> None:
        self.board = board
        self.assistant = assistant
        self.pipeline = SearchPipeline(board, assistant)
        self.guard = guard or ActivityGuard()
        self.delay = delay
        self.rng = rng or random.Random()
        self.pacing = pacing
        self.item_cooldown = item_cooldown
        self.retry_cooldown = retry_cooldown
        self.exhausted_cooldown = exhausted_cooldown
        self.session: BotSession | None = None
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        """Attach *listener* to the event log of every session started from now on."""
        self._listeners.append(listener)

    # -- lifecycle ---------------------------------------------------------

    def open_session(self, config: BotConfig, target: int | None = None) -> BotSession:
        """Validate *config*, claim the guard and return a RUNNING session."""
        missing = config.missing()
        if missing:
            raise ConfigError(missing)
        if target is None:
            target = config.target
        if target is not None and target <= 0:
            raise ValueError(f"target must be a positive number of applications, got {target}")

        self.guard.claim(BOT)
        session = BotSession(config, target)
        for listener in self._listeners:
            session.events.subscribe(listener)
        session.status = BotStatus.RUNNING
        self.session = session
        session.emit(
            f"Bot started. Target: {target if target is not None else '∞'} applications.",
            LogType.SPECIAL,
        )
        return session

    def start(self, config: BotConfig, target: int | None = None) -> BotSession:
        """Open a session and run its loop on a background thread."""
        session = self.open_session(config, target)
        thread = threading.Thread(target=self.run, args=(session,), name="hh-apply-bot", daemon=True)
        thread.start()
        return session

    def stop(self) -> bool:
        """Request a stop; the loop reaches STOPPED once the current operation unwinds."""
        session = self.session
        if session is None:
            return False
        with session._lock:
            if session.status is not BotStatus.RUNNING:
                return False
            session.status = BotStatus.STOPPING
        # Listeners run on this thread; the token must be up before they do.
        session.cancel.cancel()
        session.emit("Stop requested. Finishing the current operation...", LogType.SPECIAL)
        return True

    def snapshot(self) -> SessionSnapshot | None:
        return self.session.snapshot() if self.session is not None else None

    # -- main loop ---------------------------------------------------------

    def run(self, session: BotSession) -> StopReason:
        reason = StopReason.COMPLETED
        try:
            while True:
                halt = self._halt_reason(session)
                if halt is not None:
                    reason = halt
                    break
                step = self._cycle(session)
                if step.kind is StepKind.TERMINATE:
                    reason = step.reason or StopReason.COMPLETED
                    break
                with session._lock:
                    if step.kind is StepKind.ADVANCE_PAGE:
                        session.page += 1
                    elif step.kind is StepKind.RESET_AND_PAUSE:
                        session.page = 0
        except Exception as exc:
            log.exception("Bot loop crashed")
            session.emit(f"Unexpected bot failure: {exc}", LogType.ERROR)
        finally:
            self._finish(session, reason)
        return reason

    def _halt_reason(self, session: BotSession) -> StopReason | None:
        if session.cancel.cancelled:
            return StopReason.CANCELLED
        if session.target_reached:
            return StopReason.TARGET_REACHED
        return None

    def _cooldown(self, session: BotSession, seconds: float, then: Step | None) -> Step | None:
        try:
            self.delay(seconds, session.cancel)
        except Cancelled:
            return Step.terminate(StopReason.CANCELLED)
        return then

    def _cycle(self, session: BotSession) -> Step:
        session.emit(f"Starting a new search cycle (page {session.page + 1})")
        try:
            result = self.pipeline.run(
                session.config.query, session.page, cancel=session.cancel, notify=session.emit,
            )
        except Cancelled:
            return Step.terminate(StopReason.CANCELLED)
        except PipelineError as exc:
            session.emit(f"Search cycle failed: {exc}", LogType.ERROR)
            session.emit("Pausing for 1 minute before retrying.", LogType.PAUSE)
            return self._cooldown(session, self.retry_cooldown, RETRY)

        step = self._apply_all(session, result.vacancies)
        if step is not None:
            return step

        # Page count from the latest search, even if it shifted since the last cycle.
        if session.page < result.pages - 1:
            return ADVANCE_PAGE
        session.emit(
            "No new vacancies left across the whole search. "
            "Pausing 5 minutes before a new global search.",
            LogType.PAUSE,
        )
        return self._cooldown(session, self.exhausted_cooldown, RESET_AND_PAUSE)

    def _apply_all(self, session: BotSession, vacancies: list[Vacancy]) -> Step | None:
        for vacancy in vacancies:
            halt = self._halt_reason(session)
            if halt is not None:
                return Step.terminate(halt)

            step = self._apply_one(session, vacancy)
            if step is not None:
                return step
        return None

    def _apply_one(self, session: BotSession, vacancy: Vacancy) -> Step | None:
        responses = vacancy.responses if vacancy.responses is not None else "N/A"
        session.emit(f'Generating a cover letter for "{vacancy.name}" (responses: {responses})...')

        def on_status(status: ApplyStatus) -> None:
            if status is ApplyStatus.APPLYING:
                session.emit(f'Sending application to "{vacancy.name}"...')

        failure = submit_application(
            self.board, self.assistant, vacancy, session.config,
            cancel=session.cancel, on_status=on_status,
        )
        if failure is None:
            with session._lock:
                session.sent += 1
            session.emit(
                f"Application sent! ({session.sent}/{session.target if session.target is not None else '∞'})",
                LogType.SUCCESS,
            )
            if session.target_reached:
                return Step.terminate(StopReason.TARGET_REACHED)
            pause = self.rng.uniform(*self.pacing)
            session.emit(f"Pausing {round(pause)} seconds...", LogType.PAUSE)
            return self._cooldown(session, pause, None)

        verdict = classify(failure, session.cancel)
        if verdict.kind is VerdictKind.CANCELLED:
            return Step.terminate(StopReason.CANCELLED)
        if verdict.kind is VerdictKind.FATAL:
            session.action_required = verdict.challenge_url or verdict.message
            detail = f" Solve it at: {verdict.challenge_url}" if verdict.challenge_url else ""
            session.emit(f"CAPTCHA REQUIRED! Bot stopped.{detail}", LogType.ERROR, fatal=True)
            return Step.terminate(StopReason.CAPTCHA)
        session.emit(f'Failed to apply to "{vacancy.name}": {verdict.message}', LogType.ERROR)
        return self._cooldown(session, self.item_cooldown, None)

    def _finish(self, session: BotSession, reason: StopReason) -> None:
        session.stop_reason = reason
        if reason is StopReason.CANCELLED:
            session.emit("Bot stopped on request.", LogType.SPECIAL)
        elif reason is StopReason.TARGET_REACHED:
            session.emit(f"Target of {session.target} applications reached.", LogType.SPECIAL)
        elif reason is StopReason.CAPTCHA:
            session.emit("Bot halted until the CAPTCHA is solved on hh.ru.", LogType.SPECIAL)
        else:
            session.emit("Bot loop finished.", LogType.SPECIAL)
        session.emit("Bot session finished.", LogType.SPECIAL)
        with session._lock:
            session.status = BotStatus.STOPPED
        self.guard.release(BOT)
        session._done.set()
        log.info("Session ended: reason=%s sent=%d", reason.value, session.sent)
