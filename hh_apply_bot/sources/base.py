from __future__ import annotations

from abc import ABC, abstractmethod

from hh_apply_bot.cancel import CancelToken
from hh_apply_bot.errors import ApplyFailure
from hh_apply_bot.models import Resume, SearchPage, Vacancy


class JobBoard(ABC):
    """What the bot needs from a job board."""

    @abstractmethod
    def search_by_area(self, query: str, page: int, *, cancel: CancelToken | None = None) -> SearchPage:
        pass

    @abstractmethod
    def search_remote(self, query: str, page: int, *, cancel: CancelToken | None = None) -> SearchPage:
        pass

    @abstractmethod
    def fetch_details(self, vacancy_ids: list[str], *, cancel: CancelToken | None = None) -> list[Vacancy]:
        """Full vacancy objects for the ids that could be fetched, in id order."""

    @abstractmethod
    def apply(
        self,
        vacancy_id: str,
        resume_id: str,
        message: str,
        *,
        cancel: CancelToken | None = None,
    ) -> ApplyFailure | None:
        """Send an application; ``None`` on success."""

    @abstractmethod
    def list_resumes(self) -> list[Resume]:
        pass
