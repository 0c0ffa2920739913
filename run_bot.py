#!/usr/bin/env python3
"""Entry point to run the hh.ru auto-apply bot."""
from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from hh_apply_bot.config import SETTINGS_PATH
from hh_apply_bot.log import get_logger

log = get_logger(__name__)


def _check_setup() -> bool:
    """Return True if first-run setup is needed."""
    if not SETTINGS_PATH.exists() and "--settings" not in sys.argv and "--mock" not in sys.argv:
        print()
        print("  No settings found. Copy the example and fill it in:")
        print("    cp config/settings.example.yaml config/settings.yaml")
        print("  and put HH_ACCESS_TOKEN / GROQ_API_KEY in .env")
        print()
        return True
    return False


if __name__ == "__main__":
    if _check_setup():
        sys.exit(1)

    from hh_apply_bot.cli import main

    sys.exit(main())
