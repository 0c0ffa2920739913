"""Map a failed application to what the bot loop should do next."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hh_apply_bot.cancel import CancelToken
from hh_apply_bot.errors import ApplyFailure, FailureKind


class VerdictKind(str, Enum):
    FATAL = "fatal"
    CANCELLED = "cancelled"
    ITEM = "item"


@dataclass(frozen=True)
class Verdict:
    kind: VerdictKind
    message: str = ""
    challenge_url: str | None = None


def classify(failure: ApplyFailure, cancel: CancelToken | None = None) -> Verdict:
    """Classify *failure*; a raised token wins over any other reading."""
    if failure.kind is FailureKind.CANCELLED or (cancel is not None and cancel.cancelled):
        return Verdict(VerdictKind.CANCELLED)
    if failure.kind is FailureKind.CAPTCHA:
        return Verdict(VerdictKind.FATAL, failure.message or "CAPTCHA required", failure.captcha_url)
    if failure.kind in (FailureKind.DUPLICATE, FailureKind.GENERIC):
        return Verdict(VerdictKind.ITEM, failure.message)
    raise ValueError(f"Unhandled failure kind: {failure.kind!r}")
