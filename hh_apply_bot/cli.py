"""Command-line entry point: run the bot, search once, apply manually, list resumes."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import requests

from hh_apply_bot.config import BotConfig, load_config
from hh_apply_bot.errors import HHApplyBotError
from hh_apply_bot.guard import ActivityGuard
from hh_apply_bot.llm import get_assistant
from hh_apply_bot.log import get_logger
from hh_apply_bot.manual_apply import ManualApplyFlow
from hh_apply_bot.models import LogEvent, Vacancy
from hh_apply_bot.orchestrator import ApplicationOrchestrator
from hh_apply_bot.pipeline import SearchPipeline
from hh_apply_bot.sources import get_board

log = get_logger(__name__)

_MOCK_DEFAULTS = {
    "query": "python developer",
    "access_token": "mock-token",
    "groq_api_key": "offline",
    "resume_id": "mock-resume",
    "user_name": "Candidate",
}


def _mock_config(config: BotConfig) -> BotConfig:
    """Fill missing credentials with placeholders for an offline dry run."""
    return config.with_overrides(**{k: _MOCK_DEFAULTS[k] for k in config.missing()})


def _print_event(event: LogEvent) -> None:
    print(event.format(), flush=True)


def _describe(vacancy: Vacancy) -> str:
    responses = vacancy.responses if vacancy.responses is not None else "N/A"
    where = "remote" if vacancy.remote else vacancy.area
    salary = f", {vacancy.salary}" if vacancy.salary else ""
    return f"{vacancy.id:>10}  {vacancy.name} — {vacancy.employer} ({where}{salary}) responses: {responses}"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hh-apply-bot",
        description="Search hh.ru vacancies and apply with AI-written cover letters.",
    )
    parser.add_argument("--settings", type=Path, default=None, help="Path to settings.yaml.")
    parser.add_argument("--mock", action="store_true", help="Offline dry run: sample board, template letters.")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the auto-apply bot until stopped (Ctrl-C).")
    run.add_argument("--query", default=None, help="Override the search query.")
    run.add_argument("--target", type=int, default=None, help="Stop after this many applications.")

    search = sub.add_parser("search", help="Run the search pipeline once and print ranked vacancies.")
    search.add_argument("query", nargs="?", default=None)
    search.add_argument("--page", type=int, default=0, help="Zero-based page index.")

    apply = sub.add_parser("apply", help="Apply to a single vacancy by id.")
    apply.add_argument("vacancy_id")

    sub.add_parser("resumes", help="List your hh.ru resumes to pick resume_id.")
    return parser.parse_args(argv)


def cmd_run(args: argparse.Namespace, config: BotConfig) -> int:
    config = config.with_overrides(query=args.query)
    board = get_board(config, mock=args.mock)
    assistant = get_assistant(config.groq_api_key, config.groq_model, offline=args.mock)
    bot = ApplicationOrchestrator(board, assistant)
    bot.subscribe(_print_event)
    session = bot.start(config, args.target)
    try:
        while not session.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        bot.stop()
        session.wait()
    snapshot = session.snapshot()
    print(f"Applications sent: {snapshot.sent}")
    if snapshot.action_required:
        print(f"ACTION REQUIRED: {snapshot.action_required}")
        return 2
    return 0


def cmd_search(args: argparse.Namespace, config: BotConfig) -> int:
    query = args.query or config.query
    if not query:
        print("No query given and none in settings.", file=sys.stderr)
        return 1
    missing = config.missing(("access_token", "groq_api_key"))
    if missing:
        print("Searching needs the Groq and hh.ru keys: " + ", ".join(missing), file=sys.stderr)
        return 1
    board = get_board(config, mock=args.mock)
    assistant = get_assistant(config.groq_api_key, config.groq_model, offline=args.mock)
    result = SearchPipeline(board, assistant).run(query, args.page, notify=lambda msg, kind: print(msg))
    if not result.vacancies:
        print("Nothing found for this query. Try changing it.")
        return 0
    for vacancy in result.vacancies:
        print(_describe(vacancy))
    print(f"Page {args.page + 1} of {max(result.pages, 1)}")
    return 0


def cmd_apply(args: argparse.Namespace, config: BotConfig) -> int:
    board = get_board(config, mock=args.mock)
    assistant = get_assistant(config.groq_api_key, config.groq_model, offline=args.mock)
    details = board.fetch_details([args.vacancy_id])
    if not details:
        print(f"Vacancy {args.vacancy_id} not found.", file=sys.stderr)
        return 1
    flow = ManualApplyFlow(board, assistant, guard=ActivityGuard())
    result = flow.apply(
        details[0], config,
        on_status=lambda vid, status: print(f"{vid}: {status.value}"),
    )
    if result.ok:
        print("Application sent.")
        return 0
    print(f"Application failed: {result.error}", file=sys.stderr)
    if result.captcha_url:
        print(f"Solve the CAPTCHA at: {result.captcha_url}", file=sys.stderr)
    return 1


def cmd_resumes(args: argparse.Namespace, config: BotConfig) -> int:
    if not config.access_token:
        print("HH_ACCESS_TOKEN is not set.", file=sys.stderr)
        return 1
    resumes = get_board(config, mock=args.mock).list_resumes()
    if not resumes:
        print("No resumes found for this account.")
    for resume in resumes:
        print(f"{resume.id}  {resume.title}")
    return 0


COMMANDS = {
    "run": cmd_run,
    "search": cmd_search,
    "apply": cmd_apply,
    "resumes": cmd_resumes,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.settings)
        if args.mock:
            config = _mock_config(config)
        return COMMANDS[args.command](args, config)
    except (HHApplyBotError, requests.RequestException, ValueError) as exc:
        log.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
