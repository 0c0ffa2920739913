"""Language-model helpers: query expansion, relevance filter, cover letters.

``GroqAssistant`` talks to Groq's OpenAI-compatible endpoint through the
``openai`` SDK. ``TemplateAssistant`` is the offline stand-in used for dry
runs: no expansion, no filtering, template cover letter.
"""
from __future__ import annotations

import json
import re
from typing import Iterable

from hh_apply_bot.cancel import Cancelled, CancelToken
from hh_apply_bot.errors import LLMError
from hh_apply_bot.log import get_logger
from hh_apply_bot.models import RelevanceDecision, Vacancy
from hh_apply_bot.retry import retry

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.3-70b-versatile"

_HIGHLIGHT_RE = re.compile(r"</?highlighttext>")

EXPAND_PROMPT = (
    "You are a smart job search assistant. Expand the user's search query with "
    "synonyms, related technologies and alternative job titles. Answer with a "
    'single line where each term is enclosed in double quotes and the terms are '
    'separated by " OR ".'
)

FILTER_PROMPT = (
    "You are an expert IT recruiter. Keep only the vacancies whose TITLE strictly "
    "matches the user's original query; ignore vacancies where the keyword could "
    "only appear in the description. Return a JSON object with a single key "
    '"relevantVacancyIds" holding an array of the relevant vacancy IDs as strings. '
    "Return nothing else."
)

LETTER_PROMPT = (
    "You are a professional career assistant. Write a personalised, concise, "
    "energetic cover letter in Russian for the vacancy below.\n"
    "- Output ONLY the letter text, ready to send; no preface or remarks.\n"
    "- Do not mention relocation or business trips.\n"
    "- Open straight to the point; 2-3 short paragraphs at most.\n"
    "- In 1-2 sentences connect the candidate's experience with the key requirements.\n"
    "- End with a polite closing followed by the candidate's name.\n"
    "- Confident, professional tone."
)


def clean_requirement(text: str | None) -> str:
    """Strip hh.ru search-highlight markup from a snippet."""
    return _HIGHLIGHT_RE.sub("", text or "").strip()


def quote_query(query: str) -> str:
    return f'"{query.strip()}"'


def validate_expansion(query: str, expanded: str) -> str:
    """Accept a model expansion only if it looks like a quoted OR-disjunction."""
    expanded = (expanded or "").strip()
    if " OR " in expanded and expanded.startswith('"'):
        return expanded
    log.debug("Expansion %r rejected, using the quoted original query", expanded[:80])
    return quote_query(query)


def decode_relevance(content: str | None, candidate_ids: Iterable[str]) -> RelevanceDecision:
    """Turn the raw relevance-filter reply into a decision.

    Anything that is not ``{"relevantVacancyIds": [...]}`` yields a degraded
    decision that keeps every candidate.
    """
    all_ids = frozenset(str(i) for i in candidate_ids)
    if not content or not content.strip():
        return RelevanceDecision(all_ids, degraded=True, reason="empty response")
    try:
        data = json.loads(content)
    except ValueError as exc:
        return RelevanceDecision(all_ids, degraded=True, reason=f"unparsable response: {exc}")
    ids = data.get("relevantVacancyIds") if isinstance(data, dict) else None
    if not isinstance(ids, list):
        return RelevanceDecision(all_ids, degraded=True, reason="malformed response")
    return RelevanceDecision(frozenset(str(i) for i in ids if i is not None) & all_ids)


def template_cover_letter(vacancy: Vacancy, user_info: str, user_name: str) -> str:
    requirement = clean_requirement(vacancy.requirement)
    fit = f"\n\nYour key requirements ({requirement}) match my experience." if requirement else ""
    return f"""Good afternoon!

I am interested in the {vacancy.name} position at {vacancy.employer or 'your company'}.

{user_info}{fit}

I would be glad to discuss how I can contribute to your team.

Best regards,
{user_name}"""


class GroqAssistant:
    def __init__(self, api_key: str, model: str = "", *, client=None) -> None:
        if not api_key:
            raise LLMError("Groq API key is not configured")
        if client is None:
            from openai import OpenAI

            client = OpenAI(api_key=api_key, base_url=GROQ_BASE_URL)
        self.client = client
        self.model = model or DEFAULT_MODEL

    @retry(max_attempts=2, base_delay=2.0, retryable=(Exception,))
    def _complete(self, system: str, user: str, *, cancel: CancelToken | None = None, **options) -> str:
        r = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            **options,
        )
        return (r.choices[0].message.content or "").strip()

    def expand_query(self, query: str, *, cancel: CancelToken | None = None) -> str:
        if not query.strip():
            return ""
        try:
            content = self._complete(
                EXPAND_PROMPT, f'Expand this query: "{query}"',
                cancel=cancel, temperature=0.3, max_tokens=1024,
            )
        except Cancelled:
            raise
        except Exception as exc:
            raise LLMError(f"Query expansion failed: {exc}") from exc
        return validate_expansion(query, content)

    def filter_relevant(
        self, vacancies: list[Vacancy], original_query: str, *, cancel: CancelToken | None = None,
    ) -> RelevanceDecision:
        if not vacancies:
            return RelevanceDecision(frozenset())
        listing = "\n".join(f'ID: {v.id}, Title: "{v.name}"' for v in vacancies)
        try:
            content = self._complete(
                FILTER_PROMPT,
                f'Original user query: "{original_query}"\n\nVacancy list:\n{listing}',
                cancel=cancel,
                temperature=0.1,
                response_format={"type": "json_object"},
            )
        except Cancelled:
            raise
        except Exception as exc:
            log.warning("Relevance filter call failed (%s), keeping all vacancies", exc)
            return RelevanceDecision(
                frozenset(v.id for v in vacancies), degraded=True, reason=f"call failed: {exc}",
            )
        return decode_relevance(content, (v.id for v in vacancies))

    def generate_cover_letter(
        self, vacancy: Vacancy, user_info: str, user_name: str, *, cancel: CancelToken | None = None,
    ) -> str:
        requirement = clean_requirement(vacancy.requirement)
        requirement_text = f"Key requirements: {requirement}" if requirement else "No specific requirements listed."
        prompt = (
            f"Name to sign the letter: {user_name}\n"
            f'Candidate info: "{user_info}"\n\n'
            "Vacancy:\n"
            f'- Title: "{vacancy.name}"\n'
            f'- Company: "{vacancy.employer}"\n'
            f"- Requirements: {requirement_text}\n\n"
            "Write the cover letter."
        )
        try:
            letter = self._complete(LETTER_PROMPT, prompt, cancel=cancel, temperature=0.5, max_tokens=1500)
        except Cancelled:
            raise
        except Exception as exc:
            raise LLMError(f"Cover letter generation failed: {exc}") from exc
        if not letter:
            raise LLMError("Model returned an empty cover letter")
        log.info("Cover letter generated for %s @ %s", vacancy.name, vacancy.employer)
        return letter


class TemplateAssistant:
    """Offline assistant: the query is used as-is and every vacancy is kept."""

    def expand_query(self, query: str, *, cancel: CancelToken | None = None) -> str:
        return quote_query(query) if query.strip() else ""

    def filter_relevant(
        self, vacancies: list[Vacancy], original_query: str, *, cancel: CancelToken | None = None,
    ) -> RelevanceDecision:
        return RelevanceDecision(frozenset(v.id for v in vacancies))

    def generate_cover_letter(
        self, vacancy: Vacancy, user_info: str, user_name: str, *, cancel: CancelToken | None = None,
    ) -> str:
        return template_cover_letter(vacancy, user_info, user_name)


def get_assistant(api_key: str, model: str = "", *, offline: bool = False):
    if offline or not api_key:
        log.debug("No GROQ_API_KEY or offline mode — using template assistant")
        return TemplateAssistant()
    return GroqAssistant(api_key, model)
