"""Load settings (YAML) and credentials (env) into an immutable snapshot."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from hh_apply_bot.log import get_logger

log = get_logger(__name__)

load_dotenv()

CONFIG_DIR: Path = Path(__file__).resolve().parent.parent / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"

DEFAULT_AREA_ID = "84"
DEFAULT_PER_PAGE = 20
DEFAULT_USER_INFO = (
    "I am an active, motivated candidate with experience in my field, "
    "looking for new challenges and room to grow."
)

# Fields a bot session cannot run without.
REQUIRED_FIELDS: tuple[str, ...] = (
    "query", "access_token", "groq_api_key", "resume_id", "user_name",
)


@dataclass(frozen=True)
class BotConfig:
    query: str = ""
    target: int | None = None
    access_token: str = ""
    groq_api_key: str = ""
    groq_model: str = ""
    resume_id: str = ""
    user_name: str = ""
    user_info: str = DEFAULT_USER_INFO
    area_id: str = DEFAULT_AREA_ID
    per_page: int = DEFAULT_PER_PAGE

    def missing(self, required: tuple[str, ...] = REQUIRED_FIELDS) -> list[str]:
        return [name for name in required if not str(getattr(self, name) or "").strip()]

    def with_overrides(self, **changes: Any) -> BotConfig:
        """Copy with the non-None *changes* applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def __repr__(self) -> str:
        shown = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in ("access_token", "groq_api_key") and value:
                value = "***"
            shown.append(f"{f.name}={value!r}")
        return f"BotConfig({', '.join(shown)})"


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _parse_target(value: Any) -> int | None:
    if value is None or str(value).strip() == "":
        return None
    target = int(value)
    if target <= 0:
        raise ValueError(f"target must be positive, got {target}")
    return target


def load_settings(path: Path | None = None) -> dict[str, Any]:
    settings_path = Path(path or os.environ.get("HH_BOT_SETTINGS") or SETTINGS_PATH)
    if not settings_path.exists():
        log.debug("No settings file at %s — using environment only", settings_path)
        return {}
    with open(settings_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{settings_path} must contain a mapping")
    return data


def load_config(path: Path | None = None) -> BotConfig:
    """Merge settings.yaml with secrets from the environment."""
    data = load_settings(path)
    return BotConfig(
        query=str(data.get("query") or "").strip(),
        target=_parse_target(data.get("target")),
        access_token=get_env("HH_ACCESS_TOKEN") or str(data.get("access_token") or "").strip(),
        groq_api_key=get_env("GROQ_API_KEY"),
        groq_model=get_env("GROQ_LLM_MODEL"),
        resume_id=get_env("HH_RESUME_ID") or str(data.get("resume_id") or "").strip(),
        user_name=get_env("CANDIDATE_NAME") or str(data.get("user_name") or "").strip(),
        user_info=str(data.get("user_info") or DEFAULT_USER_INFO).strip(),
        area_id=str(data.get("area_id") or DEFAULT_AREA_ID),
        per_page=int(data.get("per_page") or DEFAULT_PER_PAGE),
    )
