"""Data models for vacancies, pipeline results, bot sessions and log events."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Salary:
    low: int | None = None
    high: int | None = None
    currency: str = ""
    gross: bool = False

    @classmethod
    def from_api(cls, data: dict | None) -> Salary | None:
        if not data:
            return None
        return cls(
            low=data.get("from"),
            high=data.get("to"),
            currency=data.get("currency") or "",
            gross=bool(data.get("gross")),
        )

    def __str__(self) -> str:
        if self.low and self.high:
            span = f"{self.low}–{self.high}"
        elif self.low:
            span = f"from {self.low}"
        elif self.high:
            span = f"up to {self.high}"
        else:
            return "not specified"
        return f"{span} {self.currency}".strip()


@dataclass(frozen=True)
class Vacancy:
    id: str
    name: str
    employer: str = ""
    url: str = ""
    area: str = ""
    schedule_id: str = ""
    schedule_name: str = ""
    salary: Salary | None = None
    requirement: str | None = None
    responsibility: str | None = None
    has_negotiations: bool = False
    responses: int | None = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def remote(self) -> bool:
        return self.schedule_id == "remote"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Vacancy:
        """Build from an hh.ru vacancy object (search item or full detail)."""
        snippet = data.get("snippet") or {}
        schedule = data.get("schedule") or {}
        counters = data.get("counters") or {}
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            employer=(data.get("employer") or {}).get("name", ""),
            url=data.get("alternate_url", ""),
            area=(data.get("area") or {}).get("name", ""),
            schedule_id=schedule.get("id", ""),
            schedule_name=schedule.get("name", ""),
            salary=Salary.from_api(data.get("salary")),
            requirement=snippet.get("requirement"),
            responsibility=snippet.get("responsibility"),
            has_negotiations=data.get("has_negotiations") is True,
            responses=counters.get("responses"),
            raw=data,
        )


@dataclass(frozen=True)
class Resume:
    id: str
    title: str


@dataclass(frozen=True)
class SearchQuery:
    raw: str
    expanded: str


@dataclass(frozen=True)
class SearchPage:
    """One partition's answer: vacancies on the page and the page count."""

    vacancies: list[Vacancy]
    pages: int


@dataclass(frozen=True)
class PipelineResult:
    vacancies: list[Vacancy]
    pages: int
    query: SearchQuery | None = None

    @classmethod
    def empty(cls, pages: int = 0, query: SearchQuery | None = None) -> PipelineResult:
        return cls(vacancies=[], pages=pages, query=query)


@dataclass(frozen=True)
class RelevanceDecision:
    """Outcome of the relevance filter.

    ``degraded`` marks a model response that could not be used; ``ids`` then
    holds every candidate id so the filter passes everything through.
    """

    ids: frozenset[str]
    degraded: bool = False
    reason: str = ""


class LogType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    PAUSE = "pause"
    SPECIAL = "special"


@dataclass(frozen=True)
class LogEvent:
    id: int
    timestamp: datetime
    kind: LogType
    message: str
    fatal: bool = False

    def format(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


class ApplyStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    APPLYING = "applying"
    SUCCESS = "success"
    ERROR = "error"


class BotStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class StopReason(str, Enum):
    CANCELLED = "cancelled"
    TARGET_REACHED = "target_reached"
    CAPTCHA = "captcha"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a bot session for display."""

    status: BotStatus
    target: int | None
    sent: int
    page: int
    action_required: str | None
    stop_reason: StopReason | None
    events: tuple[LogEvent, ...]
