"""Error taxonomy shared by the pipeline, the collaborators and the bot loop."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class HHApplyBotError(Exception):
    """Base class for errors raised by this package."""


class ConfigError(HHApplyBotError):
    """The configuration snapshot is incomplete; a session cannot start."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__("Missing required settings: " + ", ".join(self.missing))


class BusyError(HHApplyBotError):
    """Another activity (bot session or manual apply) already holds the guard."""


class LLMError(HHApplyBotError):
    """The language-model service failed or returned nothing usable."""


class BoardError(HHApplyBotError):
    """The job board answered a read request with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class PipelineStage(str, Enum):
    QUERY_EXPANSION = "query_expansion"
    FETCH = "fetch"
    DETAILS = "details"


class PipelineError(HHApplyBotError):
    def __init__(self, stage: PipelineStage, message: str) -> None:
        self.stage = stage
        super().__init__(message)


class FailureKind(str, Enum):
    DUPLICATE = "duplicate"
    CAPTCHA = "captcha"
    GENERIC = "generic"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ApplyFailure:
    """Why a single application was not sent. Returned, never raised."""

    kind: FailureKind
    message: str = ""
    captcha_url: str | None = None

    @classmethod
    def duplicate(cls, message: str = "You have already applied to this vacancy.") -> ApplyFailure:
        return cls(FailureKind.DUPLICATE, message)

    @classmethod
    def captcha(cls, message: str = "CAPTCHA required", captcha_url: str | None = None) -> ApplyFailure:
        return cls(FailureKind.CAPTCHA, message, captcha_url)

    @classmethod
    def generic(cls, message: str) -> ApplyFailure:
        return cls(FailureKind.GENERIC, message)

    @classmethod
    def cancelled(cls) -> ApplyFailure:
        return cls(FailureKind.CANCELLED, "Cancelled")
