# ruff: noqa: S101
from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path

import pytest

from mission_ingest.core.auth import token_matches
from mission_ingest.core.config import Settings, ensure_startup_ready
from mission_ingest.core.errors import StartupConfigError
from mission_ingest.core.logging import JsonFormatter, TextFormatter
from mission_ingest.core.time import parse_timestamp


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("mission_ingest.test", logging.INFO, __file__, 1, "ingest.tailer.parsed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_openclaw_paths_default_under_home(tmp_path: Path) -> None:
    config = Settings(
        openclaw_home=str(tmp_path),
        openclaw_config="",
        gateway_log="",
        watchdog_log="/var/log/custom-watchdog.log",
    )

    assert config.openclaw_config == str(tmp_path / "openclaw.json")
    assert config.gateway_log == str(tmp_path / "logs" / "gateway.log")
    assert config.watchdog_log == "/var/log/custom-watchdog.log"


def test_cost_logs_parses_pairs_and_skips_malformed_entries() -> None:
    config = Settings(
        cost_log_paths="kevin=/logs/kevin.jsonl, bad-entry ,axe=/logs/axe.jsonl,=/nope,kevin=/logs/kevin.jsonl",
    )

    assert config.cost_logs() == (("kevin", "/logs/kevin.jsonl"), ("axe", "/logs/axe.jsonl"))


def test_ensure_startup_ready_requires_database_url() -> None:
    with pytest.raises(StartupConfigError) as exc_info:
        ensure_startup_ready(Settings(database_url="  "))

    assert exc_info.value.missing == ["DATABASE_URL"]
    ensure_startup_ready(Settings(database_url="postgresql+psycopg://localhost/mission"))


def test_token_matches_never_accepts_empty_secret() -> None:
    assert token_matches("abc", "abc") is True
    assert token_matches("abc", "abd") is False
    assert token_matches("", "") is False
    assert token_matches(None, "abc") is False


def test_text_formatter_appends_sorted_extras() -> None:
    line = TextFormatter(use_utc=True).format(_record(records=3, label="gateway"))

    assert line.endswith("ingest.tailer.parsed label=gateway records=3")


def test_json_formatter_emits_event_and_context() -> None:
    payload = json.loads(JsonFormatter(use_utc=True).format(_record(records=3)))

    assert payload["event"] == "ingest.tailer.parsed"
    assert payload["level"] == "INFO"
    assert payload["records"] == 3
    assert payload["timestamp"].endswith("+00:00")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2026-02-10T14:23:01.123Z", "2026-02-10T14:23:01.123000+00:00"),
        ("2026-02-10T09:23:01-05:00", "2026-02-10T14:23:01+00:00"),
        ("2026-02-10T14:23:01", "2026-02-10T14:23:01+00:00"),
    ],
)
def test_parse_timestamp_normalizes_to_aware_utc(value: str, expected: str) -> None:
    parsed = parse_timestamp(value)

    assert parsed is not None
    assert parsed.utcoffset() == timedelta(0)
    assert parsed.isoformat() == expected


@pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
def test_parse_timestamp_rejects_garbage(value: object) -> None:
    assert parse_timestamp(value) is None
