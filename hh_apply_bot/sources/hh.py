"""hh.ru (HeadHunter) API client.

Docs: https://api.hh.ru/openapi/redoc
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import requests

from hh_apply_bot.cancel import Cancelled, CancelToken
from hh_apply_bot.errors import ApplyFailure, BoardError
from hh_apply_bot.log import get_logger
from hh_apply_bot.models import Resume, SearchPage, Vacancy
from hh_apply_bot.retry import retry
from hh_apply_bot.sources.base import JobBoard

log = get_logger(__name__)

API_URL = "https://api.hh.ru"
USER_AGENT = "HHApplyBot/1.0 (contact@example.com)"
REQUEST_TIMEOUT = 15
DETAIL_WORKERS = 8


def _error_payload(response: requests.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class HHBoard(JobBoard):
    def __init__(
        self,
        access_token: str,
        *,
        area_id: str = "84",
        per_page: int = 20,
        session: requests.Session | None = None,
    ) -> None:
        self.area_id = area_id
        self.per_page = per_page
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": USER_AGENT,
            "Authorization": f"Bearer {access_token}",
        })

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.ConnectionError, requests.Timeout))
    def _get(self, path: str, params: dict | None = None, *, cancel: CancelToken | None = None) -> dict:
        r = self.session.get(f"{API_URL}{path}", params=params, timeout=REQUEST_TIMEOUT)
        if not r.ok:
            payload = _error_payload(r)
            raise BoardError(
                payload.get("description") or f"GET {path} failed: {r.status_code} {r.reason}",
                status_code=r.status_code,
            )
        return r.json()

    def _search(self, query: str, page: int, extra: dict, cancel: CancelToken | None) -> SearchPage:
        params = {"text": query, "page": page, "per_page": self.per_page, **extra}
        data = self._get("/vacancies", params, cancel=cancel)
        vacancies = [Vacancy.from_api(item) for item in data.get("items", [])]
        return SearchPage(vacancies=vacancies, pages=int(data.get("pages") or 0))

    def search_by_area(self, query: str, page: int, *, cancel: CancelToken | None = None) -> SearchPage:
        result = self._search(query, page, {"area": self.area_id}, cancel)
        log.debug("hh.ru area=%s page=%d returned %d vacancies", self.area_id, page, len(result.vacancies))
        return result

    def search_remote(self, query: str, page: int, *, cancel: CancelToken | None = None) -> SearchPage:
        result = self._search(query, page, {"schedule": "remote"}, cancel)
        log.debug("hh.ru remote page=%d returned %d vacancies", page, len(result.vacancies))
        return result

    def _fetch_one(self, vacancy_id: str, cancel: CancelToken | None) -> Vacancy | None:
        try:
            return Vacancy.from_api(self._get(f"/vacancies/{vacancy_id}", cancel=cancel))
        except Cancelled:
            raise
        except (requests.RequestException, BoardError, ValueError, KeyError) as exc:
            log.warning("Details for vacancy %s unavailable, dropping it: %s", vacancy_id, exc)
            return None

    def fetch_details(self, vacancy_ids: list[str], *, cancel: CancelToken | None = None) -> list[Vacancy]:
        if not vacancy_ids:
            return []
        with ThreadPoolExecutor(max_workers=min(DETAIL_WORKERS, len(vacancy_ids))) as pool:
            results = list(pool.map(lambda vid: self._fetch_one(vid, cancel), vacancy_ids))
        return [v for v in results if v is not None]

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
        try:
            r = self.session.post(
                f"{API_URL}/negotiations",
                params={"vacancy_id": vacancy_id, "resume_id": resume_id, "message": message},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            return ApplyFailure.generic(f"Network error: {exc}")
        if r.ok:
            return None

        payload = _error_payload(r)
        errors = payload.get("errors")
        # Anything but a list of objects is treated as a plain failure.
        errors = [e for e in errors if isinstance(e, dict)] if isinstance(errors, list) else []
        for err in errors:
            if err.get("type") == "captcha_required":
                return ApplyFailure.captcha(err.get("value") or "CAPTCHA required", err.get("captcha_url"))
        if r.status_code == 400 and any(err.get("value") == "negotiation.exists" for err in errors):
            return ApplyFailure.duplicate()
        description = payload.get("description")
        if not isinstance(description, str) or not description:
            description = f"Apply failed: {r.status_code} {r.reason}"
        return ApplyFailure.generic(description)

    def list_resumes(self) -> list[Resume]:
        data = self._get("/resumes/mine")
        return [Resume(id=str(item["id"]), title=item.get("title", "")) for item in data.get("items", [])]
