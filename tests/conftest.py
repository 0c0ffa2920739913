import os
import tempfile

os.environ.setdefault("HH_BOT_LOG_DIR", tempfile.mkdtemp(prefix="hh-bot-logs-"))

import pytest

from hh_apply_bot.cancel import CancelToken
from hh_apply_bot.config import BotConfig
from hh_apply_bot.errors import ApplyFailure, LLMError
from hh_apply_bot.models import RelevanceDecision, Resume, SearchPage, Vacancy
from hh_apply_bot.sources.base import JobBoard


def make_vacancy(vid, name=None, *, responses=None, applied=False, remote=False, requirement=None):
    return Vacancy(
        id=str(vid),
        name=name or f"Python Developer {vid}",
        employer=f"Employer {vid}",
        schedule_id="remote" if remote else "fullDay",
        has_negotiations=applied,
        responses=responses,
        requirement=requirement,
    )


class FakeBoard(JobBoard):
    """In-memory board that records every call.

    ``area`` / ``remote`` are lists of vacancies or an exception to raise.
    ``apply_results`` is consumed in order; once empty every apply succeeds.
    """

    def __init__(self, area=None, remote=None, *, pages=1, missing_details=(), apply_results=None):
        self.area = area if area is not None else []
        self.remote = remote if remote is not None else []
        self.pages = pages
        self.missing_details = set(missing_details)
        self.apply_results = list(apply_results or [])
        self.calls = []
        self.on_apply = None

    def _page(self, source):
        if isinstance(source, Exception):
            raise source
        return SearchPage(list(source), self.pages)

    def search_by_area(self, query, page, *, cancel=None):
        self.calls.append(("area", query, page))
        return self._page(self.area)

    def search_remote(self, query, page, *, cancel=None):
        self.calls.append(("remote", query, page))
        return self._page(self.remote)

    def fetch_details(self, vacancy_ids, *, cancel=None):
        self.calls.append(("details", tuple(vacancy_ids)))
        listed = {}
        for source in (self.area, self.remote):
            if not isinstance(source, Exception):
                for v in source:
                    listed.setdefault(v.id, v)
        return [listed[vid] for vid in vacancy_ids if vid in listed and vid not in self.missing_details]

    def apply(self, vacancy_id, resume_id, message, *, cancel=None):
        self.calls.append(("apply", vacancy_id, resume_id, message))
        if self.on_apply is not None:
            self.on_apply(vacancy_id)
        if self.apply_results:
            return self.apply_results.pop(0)
        return None

    def list_resumes(self):
        return [Resume("r1", "Resume")]

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    def searched_pages(self):
        return [call[2] for call in self.calls if call[0] == "area"]


class FakeAssistant:
    def __init__(self, *, relevant=None, expand_errors=0, filter_error=None, letter_error=None):
        self.relevant = relevant
        self.expand_errors = expand_errors
        self.filter_error = filter_error
        self.letter_error = letter_error
        self.calls = []
        self.on_letter = None

    def expand_query(self, query, *, cancel=None):
        self.calls.append(("expand", query))
        if self.expand_errors:
            self.expand_errors -= 1
            raise LLMError("Query expansion failed: model unavailable")
        return f'"{query}" OR "{query} engineer"'

    def filter_relevant(self, vacancies, original_query, *, cancel=None):
        self.calls.append(("filter", original_query, tuple(v.name for v in vacancies)))
        if self.filter_error is not None:
            raise self.filter_error
        if self.relevant is None:
            return RelevanceDecision(frozenset(v.id for v in vacancies))
        return RelevanceDecision(frozenset(self.relevant))

    def generate_cover_letter(self, vacancy, user_info, user_name, *, cancel=None):
        self.calls.append(("letter", vacancy.id, user_info, user_name))
        if self.on_letter is not None:
            self.on_letter(vacancy.id)
        if self.letter_error is not None:
            raise self.letter_error
        return f"Letter for {vacancy.name} from {user_name}"

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


class RecordingDelay:
    """Stands in for the cancellable wait; no real time passes.

    ``on_call(n, seconds, cancel)`` runs after the n-th wait is recorded and
    may cancel the session.
    """

    def __init__(self, on_call=None):
        self.calls = []
        self.on_call = on_call

    def __call__(self, seconds, cancel: CancelToken):
        cancel.raise_if_cancelled()
        self.calls.append(seconds)
        if self.on_call is not None:
            self.on_call(len(self.calls), seconds, cancel)
        cancel.raise_if_cancelled()


@pytest.fixture()
def config():
    return BotConfig(
        query="python developer",
        access_token="hh-token",
        groq_api_key="groq-key",
        resume_id="resume-1",
        user_name="Denis",
        user_info="Backend developer, 5 years of Python.",
    )


@pytest.fixture()
def captcha():
    return ApplyFailure.captcha("Captcha required", "https://hh.ru/captcha?key=abc")
