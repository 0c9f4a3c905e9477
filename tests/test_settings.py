from pathlib import Path

import pytest

from finance_tracker.core import settings


@pytest.mark.parametrize(
    "line, expected",
    [
        ("API_BASE_URL: https://tracker.example.com", ("API_BASE_URL", "https://tracker.example.com")),
        ('USER_EMAIL: "alice@example.com"  # signed-in user', ("USER_EMAIL", "alice@example.com")),
        ("PORT: 9000", ("PORT", "9000")),
        ("# a comment", None),
        ("OPENAI_API_KEY:", None),
        ("no separator", None),
        ("OCR_TOKEN: 'unbalanced", None),
    ],
)
def test_parse_config_line(line: str, expected: tuple[str, str] | None) -> None:
    assert settings.parse_config_line(line) == expected


def test_read_config_file(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("LOG_LEVEL: DEBUG\n\nSEARCH_DEBOUNCE_MS: 150\n", encoding="utf-8")

    assert settings.read_config_file(str(path)) == {"LOG_LEVEL": "DEBUG", "SEARCH_DEBOUNCE_MS": "150"}
    assert settings.read_config_file(str(tmp_path / "missing.yaml")) == {}


def test_env_getters(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SEARCH_DEBOUNCE_MS", "150")
    monkeypatch.setenv("SYNC_INTERVAL_SECONDS", "-1")
    monkeypatch.setenv("REALTIME_RECONNECT_ATTEMPTS", "many")

    assert settings.get_env_int("SEARCH_DEBOUNCE_MS", 300, min_value=0) == 150
    assert settings.get_env_float("SYNC_INTERVAL_SECONDS", 0.0, min_value=0.0) == 0.0
    assert settings.get_env_int("REALTIME_RECONNECT_ATTEMPTS", 5) == 5


def test_mask_value() -> None:
    assert settings.mask_value("API_TOKEN", "abcdef123") == "ab...23"
    assert settings.mask_value("OPENAI_API_KEY", "sk") == "****"
    assert settings.mask_value("API_BASE_URL", "https://tracker.example.com") == "https://tracker.example.com"
