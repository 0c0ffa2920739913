"""Cover letter + submit for one vacancy, shared by the bot loop and manual apply."""
from __future__ import annotations

from typing import Callable

from hh_apply_bot.cancel import Cancelled, CancelToken
from hh_apply_bot.config import BotConfig
from hh_apply_bot.errors import ApplyFailure, LLMError
from hh_apply_bot.log import get_logger
from hh_apply_bot.models import ApplyStatus, Vacancy
from hh_apply_bot.sources.base import JobBoard

log = get_logger(__name__)

StatusCallback = Callable[[ApplyStatus], None]


def submit_application(
    board: JobBoard,
    assistant,
    vacancy: Vacancy,
    config: BotConfig,
    *,
    cancel: CancelToken,
    on_status: StatusCallback | None = None,
) -> ApplyFailure | None:
    """Generate a cover letter and apply. Returns ``None`` on success."""
    def status(value: ApplyStatus) -> None:
        if on_status is not None:
            on_status(value)

    if cancel.cancelled:
        return ApplyFailure.cancelled()
    status(ApplyStatus.GENERATING)
    try:
        letter = assistant.generate_cover_letter(
            vacancy, config.user_info, config.user_name, cancel=cancel,
        )
    except Cancelled:
        return ApplyFailure.cancelled()
    except LLMError as exc:
        return ApplyFailure.generic(str(exc))

    if cancel.cancelled:
        return ApplyFailure.cancelled()
    status(ApplyStatus.APPLYING)
    failure = board.apply(vacancy.id, config.resume_id, letter, cancel=cancel)
    if failure is None:
        log.debug("Applied to %s (%s)", vacancy.id, vacancy.name)
    return failure
