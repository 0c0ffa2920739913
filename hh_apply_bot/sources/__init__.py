from .base import JobBoard
from .hh import HHBoard
from .mock import MockBoard

from hh_apply_bot.config import BotConfig
from hh_apply_bot.log import get_logger

log = get_logger(__name__)

__all__ = ["JobBoard", "HHBoard", "MockBoard", "get_board"]


def get_board(config: BotConfig, *, mock: bool = False) -> JobBoard:
    if mock:
        log.info("Using MockBoard (offline, no applications are sent)")
        return MockBoard()
    log.info("Using hh.ru board (area=%s, per_page=%d)", config.area_id, config.per_page)
    return HHBoard(config.access_token, area_id=config.area_id, per_page=config.per_page)
