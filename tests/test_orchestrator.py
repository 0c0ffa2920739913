import random
import threading
import time

import pytest

from conftest import FakeAssistant, FakeBoard, RecordingDelay, make_vacancy

from hh_apply_bot.errors import ApplyFailure, BusyError, ConfigError, LLMError
from hh_apply_bot.guard import BOT
from hh_apply_bot.models import BotStatus, LogType, StopReason
from hh_apply_bot.orchestrator import ApplicationOrchestrator


def _bot(board, assistant=None, delay=None, **kwargs):
    return ApplicationOrchestrator(
        board,
        assistant or FakeAssistant(),
        delay=delay or RecordingDelay(),
        rng=random.Random(7),
        **kwargs,
    )


def _stop_on(bot, nth):
    def on_call(n, seconds, cancel):
        if n == nth:
            bot.stop()
    return on_call


def _messages(session, kind=None):
    return [e.message for e in session.events.events() if kind is None or e.kind is kind]


def test_success_then_pacing_delay(config):
    board = FakeBoard(area=[make_vacancy(1, responses=5)], remote=[])
    delay = RecordingDelay()
    bot = _bot(board, delay=delay)
    delay.on_call = _stop_on(bot, 1)

    session = bot.open_session(config)
    reason = bot.run(session)

    assert reason is StopReason.CANCELLED
    assert session.sent == 1
    assert len(_messages(session, LogType.SUCCESS)) == 1
    assert len(delay.calls) == 1
    assert 10 <= delay.calls[0] <= 45
    assert board.count("apply") == 1
    assert board.calls[-1][0] == "apply"
    assert session.status is BotStatus.STOPPED


def test_cover_letter_uses_profile(config):
    board = FakeBoard(area=[make_vacancy(1)], remote=[])
    assistant = FakeAssistant()
    bot = _bot(board, assistant)

    bot.run(bot.open_session(config, target=1))

    assert ("letter", "1", config.user_info, "Denis") in assistant.calls
    _, vacancy_id, resume_id, message = [c for c in board.calls if c[0] == "apply"][0]
    assert (vacancy_id, resume_id) == ("1", "resume-1")
    assert message == "Letter for Python Developer 1 from Denis"


def test_target_reached_mid_page(config):
    board = FakeBoard(area=[make_vacancy(i, responses=i) for i in range(1, 4)], remote=[])
    delay = RecordingDelay()
    bot = _bot(board, delay=delay)

    session = bot.open_session(config, target=2)
    reason = bot.run(session)

    assert reason is StopReason.TARGET_REACHED
    assert session.sent == 2
    assert [c[1] for c in board.calls if c[0] == "apply"] == ["1", "2"]
    # one pacing pause between the two applications, none after the last
    assert len(delay.calls) == 1
    specials = _messages(session, LogType.SPECIAL)
    assert specials[-2:] == ["Target of 2 applications reached.", "Bot session finished."]


def test_target_from_config_is_used(config):
    board = FakeBoard(area=[make_vacancy(1), make_vacancy(2)], remote=[])
    bot = _bot(board)
    session = bot.open_session(config.with_overrides(target=1))
    bot.run(session)
    assert session.sent == 1
    assert session.stop_reason is StopReason.TARGET_REACHED


def test_captcha_is_fatal(config, captcha):
    board = FakeBoard(
        area=[make_vacancy(1), make_vacancy(2)], remote=[], apply_results=[captcha],
    )
    delay = RecordingDelay()
    bot = _bot(board, delay=delay)

    session = bot.open_session(config, target=5)
    reason = bot.run(session)

    assert reason is StopReason.CAPTCHA
    assert session.status is BotStatus.STOPPED
    assert session.sent == 0
    assert board.count("apply") == 1
    assert board.count("area") == 1
    assert delay.calls == []
    fatal = [e for e in session.events.events() if e.fatal]
    assert len(fatal) == 1
    assert fatal[0].kind is LogType.ERROR
    assert session.action_required == "https://hh.ru/captcha?key=abc"
    assert bot.guard.owner is None


def test_item_error_cools_down_and_continues(config):
    board = FakeBoard(
        area=[make_vacancy(1), make_vacancy(2)], remote=[],
        apply_results=[ApplyFailure.duplicate()],
    )
    delay = RecordingDelay()
    bot = _bot(board, delay=delay)

    session = bot.open_session(config, target=1)
    bot.run(session)

    assert session.sent == 1
    assert delay.calls == [5.0]
    errors = _messages(session, LogType.ERROR)
    assert errors == ['Failed to apply to "Python Developer 1": You have already applied to this vacancy.']


def test_cover_letter_failure_is_item_level(config):
    board = FakeBoard(area=[make_vacancy(1)], remote=[], pages=1)
    assistant = FakeAssistant(letter_error=LLMError("Model returned an empty cover letter"))
    delay = RecordingDelay()
    bot = _bot(board, assistant, delay=delay)
    delay.on_call = _stop_on(bot, 2)

    session = bot.open_session(config)
    bot.run(session)

    assert board.count("apply") == 0
    # item cooldown, then the exhausted-search pause where the stop lands
    assert delay.calls == [5.0, 300.0]
    assert session.stop_reason is StopReason.CANCELLED


def test_pipeline_failure_retries_same_page(config):
    board = FakeBoard(area=[make_vacancy(1)], remote=[], pages=3)
    assistant = FakeAssistant(expand_errors=2)
    delay = RecordingDelay()
    bot = _bot(board, assistant, delay=delay)

    session = bot.open_session(config, target=1)
    bot.run(session)

    assert delay.calls == [60.0, 60.0]
    assert board.searched_pages() == [0]
    assert session.sent == 1
    assert len([m for m in _messages(session, LogType.ERROR) if m.startswith("Search cycle failed")]) == 2


def test_pages_advance_then_reset_after_last(config):
    board = FakeBoard(area=[], remote=[], pages=2)
    delay = RecordingDelay()
    bot = _bot(board, delay=delay)
    delay.on_call = _stop_on(bot, 2)

    session = bot.open_session(config)
    bot.run(session)

    assert board.searched_pages() == [0, 1, 0, 1]
    assert delay.calls == [300.0, 300.0]
    pauses = [m for m in _messages(session, LogType.PAUSE) if "Pausing 5 minutes" in m]
    assert len(pauses) == 2


def test_last_page_resets_cursor_to_zero(config):
    board = FakeBoard(area=[], remote=[], pages=1)
    seen_pages = []
    delay = RecordingDelay()
    bot = _bot(board, delay=delay)

    def on_call(n, seconds, cancel):
        seen_pages.append(bot.session.page)
        if n == 2:
            bot.stop()

    delay.on_call = on_call
    session = bot.open_session(config)
    bot.run(session)

    assert delay.calls == [300.0, 300.0]
    assert board.searched_pages() == [0, 0]
    assert seen_pages == [0, 0]


def test_stop_during_cover_letter_prevents_submission(config):
    board = FakeBoard(area=[make_vacancy(1), make_vacancy(2)], remote=[])
    assistant = FakeAssistant()
    bot = _bot(board, assistant)
    assistant.on_letter = lambda vacancy_id: bot.stop()

    session = bot.open_session(config)
    reason = bot.run(session)

    assert reason is StopReason.CANCELLED
    assert board.count("apply") == 0
    assert assistant.count("letter") == 1
    assert _messages(session, LogType.ERROR) == []
    specials = _messages(session, LogType.SPECIAL)
    assert "Stop requested. Finishing the current operation..." in specials
    assert specials[-2:] == ["Bot stopped on request.", "Bot session finished."]


def test_no_calls_after_stop_during_apply(config):
    board = FakeBoard(area=[make_vacancy(1), make_vacancy(2), make_vacancy(3)], remote=[])
    bot = _bot(board)
    board.on_apply = lambda vacancy_id: bot.stop()

    session = bot.open_session(config)
    bot.run(session)

    names = [c[0] for c in board.calls]
    assert names.count("apply") == 1
    assert names[-1] == "apply"
    assert session.sent == 1


def test_session_rules(config):
    bot = _bot(FakeBoard())
    with pytest.raises(ConfigError) as exc_info:
        bot.open_session(config.with_overrides(resume_id=""))
    assert exc_info.value.missing == ["resume_id"]

    bot.open_session(config)
    assert bot.guard.owner == BOT
    with pytest.raises(BusyError):
        bot.open_session(config)


def test_background_session_stops_promptly(config):
    board = FakeBoard(area=[make_vacancy(1), make_vacancy(2)], remote=[])
    bot = ApplicationOrchestrator(board, FakeAssistant(), pacing=(600.0, 600.0))

    session = bot.start(config)
    deadline = time.monotonic() + 5
    while session.sent == 0 and time.monotonic() < deadline:
        time.sleep(0.01)
    assert session.sent == 1

    assert bot.stop() is True
    assert session.wait(timeout=5)
    snapshot = bot.snapshot()
    assert snapshot.status is BotStatus.STOPPED
    assert snapshot.stop_reason is StopReason.CANCELLED
    assert board.count("apply") == 1
    assert bot.stop() is False


def test_stop_cuts_off_submission_before_listeners_run(config):
    board = FakeBoard(area=[make_vacancy(1), make_vacancy(2)], remote=[])
    assistant = FakeAssistant()
    bot = ApplicationOrchestrator(board, assistant, pacing=(600.0, 600.0))
    stopping = threading.Event()
    applied = threading.Event()

    # the letter finishes only once stop() is in progress
    assistant.on_letter = lambda vacancy_id: stopping.wait(timeout=5)
    board.on_apply = lambda vacancy_id: applied.set()

    def slow_listener(event):
        if event.message.startswith("Stop requested"):
            stopping.set()
            applied.wait(timeout=0.5)

    bot.subscribe(slow_listener)
    session = bot.start(config)
    deadline = time.monotonic() + 5
    while assistant.count("letter") == 0 and time.monotonic() < deadline:
        time.sleep(0.01)

    assert bot.stop() is True
    assert session.wait(timeout=5)
    assert board.count("apply") == 0
    assert session.sent == 0
    assert session.stop_reason is StopReason.CANCELLED


@pytest.mark.parametrize("target", [0, -1])
def test_non_positive_target_is_refused(config, target):
    bot = _bot(FakeBoard())
    with pytest.raises(ValueError):
        bot.open_session(config, target=target)
    assert bot.guard.owner is None
    assert bot.session is None
