from pathlib import Path

import pytest

from hh_apply_bot.config import DEFAULT_AREA_ID, BotConfig, load_config

_ENV_KEYS = ("HH_ACCESS_TOKEN", "GROQ_API_KEY", "GROQ_LLM_MODEL", "HH_RESUME_ID", "CANDIDATE_NAME", "HH_BOT_SETTINGS")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_load_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    settings = tmp_path / "settings.yaml"
    settings.write_text(
        """
query: "Python developer"
target: 15
resume_id: "res-1"
user_name: "Denis"
user_info: "Backend developer"
per_page: 50
        """.strip(),
        encoding="utf-8",
    )
    monkeypatch.setenv("HH_ACCESS_TOKEN", "hh-secret")
    monkeypatch.setenv("GROQ_API_KEY", "groq-secret")

    config = load_config(settings)

    assert config.query == "Python developer"
    assert config.target == 15
    assert config.access_token == "hh-secret"
    assert config.groq_api_key == "groq-secret"
    assert config.area_id == DEFAULT_AREA_ID
    assert config.per_page == 50
    assert config.missing() == []
    assert "hh-secret" not in repr(config)


def test_settings_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    settings = tmp_path / "other.yaml"
    settings.write_text("query: devops\ntarget:\n", encoding="utf-8")
    monkeypatch.setenv("HH_BOT_SETTINGS", str(settings))

    config = load_config()

    assert config.query == "devops"
    assert config.target is None
    assert config.missing() == ["access_token", "groq_api_key", "resume_id", "user_name"]


def test_missing_file_means_empty_settings(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.yaml")
    assert config.query == ""
    assert "query" in config.missing()


def test_config_is_immutable_snapshot() -> None:
    config = BotConfig(query="a")
    changed = config.with_overrides(query="b", target=None)
    assert (config.query, changed.query) == ("a", "b")
    with pytest.raises(AttributeError):
        config.query = "c"  # type: ignore[misc]


@pytest.mark.parametrize("target", ["0", "-3"])
def test_non_positive_target_in_settings_is_rejected(tmp_path: Path, target: str) -> None:
    settings = tmp_path / "settings.yaml"
    settings.write_text(f"query: devops\ntarget: {target}\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(settings)
