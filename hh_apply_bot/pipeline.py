"""
Search pipeline: expand → fetch (area + remote) → drop applied → AI relevance → details → rank.

Each stage short-circuits to an empty result when it leaves nothing to do.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from hh_apply_bot.cancel import Cancelled, CancelToken
from hh_apply_bot.errors import LLMError, PipelineError, PipelineStage
from hh_apply_bot.log import get_logger
from hh_apply_bot.models import (
    LogType, PipelineResult, RelevanceDecision, SearchPage, SearchQuery, Vacancy,
)
from hh_apply_bot.sources.base import JobBoard

log = get_logger(__name__)

Notify = Callable[[str, LogType], None]


def _quiet(message: str, kind: LogType = LogType.INFO) -> None:
    log.debug("%s", message)


def merge_unique(*batches: list[Vacancy]) -> list[Vacancy]:
    """Concatenate batches, keeping the first occurrence of every id."""
    seen: set[str] = set()
    merged: list[Vacancy] = []
    for batch in batches:
        for vacancy in batch:
            if vacancy.id not in seen:
                seen.add(vacancy.id)
                merged.append(vacancy)
    return merged


def rank_by_responses(vacancies: list[Vacancy]) -> list[Vacancy]:
    """Fewest responses first; unknown counts go last. Stable."""
    return sorted(vacancies, key=lambda v: (v.responses is None, v.responses or 0))


class SearchPipeline:
    def __init__(self, board: JobBoard, assistant) -> None:
        self.board = board
        self.assistant = assistant

    def _fetch_partitions(self, query: str, page: int, cancel: CancelToken) -> tuple[list[Vacancy], int]:
        partitions: dict[str, Callable[..., SearchPage]] = {
            "area": self.board.search_by_area,
            "remote": self.board.search_remote,
        }
        with ThreadPoolExecutor(max_workers=len(partitions)) as pool:
            futures = {
                name: pool.submit(search, query, page, cancel=cancel)
                for name, search in partitions.items()
            }
            batches: list[list[Vacancy]] = []
            pages = 0
            failures: list[str] = []
            for name, future in futures.items():
                try:
                    result = future.result()
                except Cancelled:
                    raise
                except Exception as exc:
                    log.warning("Partition %r failed: %s", name, exc)
                    failures.append(f"{name}: {exc}")
                    continue
                batches.append(result.vacancies)
                pages = max(pages, result.pages)

        if len(failures) == len(partitions):
            raise PipelineError(PipelineStage.FETCH, "Vacancy search failed: " + "; ".join(failures))
        return merge_unique(*batches), pages

    def run(
        self,
        query: str,
        page: int,
        *,
        cancel: CancelToken | None = None,
        notify: Notify | None = None,
    ) -> PipelineResult:
        cancel = cancel or CancelToken()
        notify = notify or _quiet

        # 1. Query expansion
        notify("AI: expanding the search query...", LogType.INFO)
        cancel.raise_if_cancelled()
        try:
            expanded = self.assistant.expand_query(query, cancel=cancel)
        except LLMError as exc:
            raise PipelineError(PipelineStage.QUERY_EXPANSION, str(exc)) from exc
        search = SearchQuery(raw=query, expanded=expanded)

        # 2. Candidate fetch: area and remote partitions in parallel
        notify(f"Searching vacancies (area + remote) for: {expanded}", LogType.INFO)
        cancel.raise_if_cancelled()
        candidates, pages = self._fetch_partitions(expanded, page, cancel)

        # 3. Drop vacancies already applied to
        notify(f"Found {len(candidates)} vacancies. Dropping ones you already applied to...", LogType.INFO)
        unapplied = [v for v in candidates if not v.has_negotiations]
        if not unapplied:
            notify("No vacancies left that you have not applied to yet.", LogType.INFO)
            return PipelineResult.empty(pages, search)
        notify(f"{len(unapplied)} unique vacancies remain.", LogType.INFO)

        # 4. AI relevance filter on titles, against the original query
        notify("AI: filtering vacancies by title relevance...", LogType.INFO)
        cancel.raise_if_cancelled()
        try:
            decision = self.assistant.filter_relevant(unapplied, query, cancel=cancel)
        except Cancelled:
            raise
        except Exception as exc:
            decision = RelevanceDecision(
                frozenset(v.id for v in unapplied), degraded=True, reason=f"call failed: {exc}",
            )
        if decision.degraded:
            log.warning("Relevance filter degraded: %s", decision.reason)
            notify(
                f"AI relevance filter unavailable ({decision.reason}); keeping all {len(unapplied)} vacancies.",
                LogType.INFO,
            )
            relevant = unapplied
        else:
            relevant = [v for v in unapplied if v.id in decision.ids]
        if not relevant:
            notify("No relevant vacancies left after AI filtering.", LogType.INFO)
            return PipelineResult.empty(pages, search)
        notify(f"{len(relevant)} relevant vacancies remain after AI filtering.", LogType.INFO)

        # 5. Details (response counters)
        notify("Fetching details to sort by popularity...", LogType.INFO)
        cancel.raise_if_cancelled()
        try:
            detailed = self.board.fetch_details([v.id for v in relevant], cancel=cancel)
        except Cancelled:
            raise
        except Exception as exc:
            raise PipelineError(PipelineStage.DETAILS, f"Vacancy details failed: {exc}") from exc

        # 6. Rank
        notify("Sorting by number of responses...", LogType.INFO)
        ranked = rank_by_responses(detailed)
        log.info("Pipeline page=%d: %d candidates → %d ranked (pages=%d)",
                 page, len(candidates), len(ranked), pages)
        return PipelineResult(vacancies=ranked, pages=pages, query=search)
