"""Offline job board for dry runs: a fixed set of sample vacancies, nothing is sent."""
from __future__ import annotations

from dataclasses import replace

from hh_apply_bot.cancel import CancelToken
from hh_apply_bot.errors import ApplyFailure
from hh_apply_bot.log import get_logger
from hh_apply_bot.models import Resume, Salary, SearchPage, Vacancy
from hh_apply_bot.sources.base import JobBoard

log = get_logger(__name__)

_SAMPLE: list[Vacancy] = [
    Vacancy(
        id="mock-1",
        name="Python Developer",
        employer="TechCorp",
        url="https://example.com/vacancy/1",
        area="Stavropol",
        schedule_id="fullDay",
        salary=Salary(120000, 180000, "RUR"),
        requirement="Python 3, Django, PostgreSQL.",
        responses=12,
    ),
    Vacancy(
        id="mock-2",
        name="Backend Engineer (Python)",
        employer="CloudScale",
        url="https://example.com/vacancy/2",
        area="Moscow",
        schedule_id="remote",
        requirement="FastAPI, asyncio, Docker.",
        responses=3,
    ),
    Vacancy(
        id="mock-3",
        name="QA Automation Engineer",
        employer="Enterprise Platform",
        url="https://example.com/vacancy/3",
        area="Stavropol",
        schedule_id="remote",
        requirement="pytest, Selenium.",
    ),
]


class MockBoard(JobBoard):
    def __init__(self, vacancies: list[Vacancy] | None = None) -> None:
        self.vacancies = list(vacancies if vacancies is not None else _SAMPLE)
        self.applied: list[str] = []

    def _listed(self, remote: bool) -> list[Vacancy]:
        return [
            replace(v, has_negotiations=v.id in self.applied)
            for v in self.vacancies
            if v.remote is remote
        ]

    def search_by_area(self, query: str, page: int, *, cancel: CancelToken | None = None) -> SearchPage:
        return SearchPage(self._listed(remote=False), pages=1)

    def search_remote(self, query: str, page: int, *, cancel: CancelToken | None = None) -> SearchPage:
        return SearchPage(self._listed(remote=True), pages=1)

    def fetch_details(self, vacancy_ids: list[str], *, cancel: CancelToken | None = None) -> list[Vacancy]:
        by_id = {v.id: v for v in self.vacancies}
        return [by_id[vid] for vid in vacancy_ids if vid in by_id]

    def apply(
        self,
        vacancy_id: str,
        resume_id: str,
        message: str,
        *,
        cancel: CancelToken | None = None,
    ) -> ApplyFailure | None:
        if cancel is not None and cancel.cancelled:
            return ApplyFailure.cancelled()
        if vacancy_id in self.applied:
            return ApplyFailure.duplicate()
        log.info("MockBoard: pretending to apply to %s", vacancy_id)
        self.applied.append(vacancy_id)
        return None

    def list_resumes(self) -> list[Resume]:
        return [Resume(id="mock-resume", title="Sample resume")]
