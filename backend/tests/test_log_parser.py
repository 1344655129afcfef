# ruff: noqa: S101
from __future__ import annotations

import pytest

from mission_ingest.services.ingestion.log_parser import (
    GATEWAY_RULES,
    parse_gateway_line,
    parse_watchdog_line,
)


def test_telegram_provider_start_becomes_bot_start_for_account() -> None:
    event = parse_gateway_line("2026-02-10T14:23:01.123Z [telegram] [kevin] starting provider (@KevinFinanceBot)")

    assert event is not None
    assert event.event_type == "bot_start"
    assert event.agent_id == "kevin"
    assert event.title == "@KevinFinanceBot started"
    assert event.severity == "info"
    assert event.source == "gateway"
    assert event.occurred_at == "2026-02-10T14:23:01.123Z"


def test_gateway_listening_line_carries_pid_and_address() -> None:
    event = parse_gateway_line("2026-02-10T14:23:00.000Z [gateway] listening on ws://127.0.0.1:18789 (PID 4242)")

    assert event is not None
    assert event.event_type == "system"
    assert event.title == "Gateway started (PID 4242)"
    assert event.detail == "ws://127.0.0.1:18789"


@pytest.mark.parametrize(
    ("signal", "event_type", "severity"),
    [
        ("SIGTERM", "bot_stop", "warn"),
        ("SIGUSR1", "reload", "info"),
    ],
)
def test_gateway_signal_maps_sigterm_to_shutdown(signal: str, event_type: str, severity: str) -> None:
    event = parse_gateway_line(f"2026-02-10T14:30:00.000Z [gateway] signal {signal} received")

    assert event is not None
    assert event.event_type == event_type
    assert event.severity == severity
    assert event.title == f"Gateway received {signal}"


def test_gateway_agent_model_line() -> None:
    event = parse_gateway_line("2026-02-10T14:23:00.500Z [gateway] agent model: anthropic/claude-opus-4-5")

    assert event is not None
    assert event.event_type == "system"
    assert event.title == "Agent model: anthropic/claude-opus-4-5"


def test_reload_line_becomes_config_change_with_fields() -> None:
    event = parse_gateway_line(
        "2026-02-10T14:40:00.000Z [reload] config change detected; evaluating reload (agents.list, models)",
    )

    assert event is not None
    assert event.event_type == "config_change"
    assert event.title == "Config change detected"
    assert event.detail == "agents.list, models"


def test_plugin_and_heartbeat_components() -> None:
    plugin = parse_gateway_line("2026-02-10T14:23:00.100Z [plugins] Plugin registered (memory-core v1.2)")
    heartbeat = parse_gateway_line("2026-02-10T14:23:30.000Z [heartbeat] ok (12 agents)")

    assert plugin is not None
    assert plugin.event_type == "plugin_load"
    assert plugin.title == "Plugin loaded (memory-core v1.2)"
    assert heartbeat is not None
    assert heartbeat.event_type == "heartbeat"
    assert heartbeat.title == "Heartbeat ok (12 agents)"


def test_unmatched_component_message_falls_back_to_generic_system_event() -> None:
    event = parse_gateway_line("2026-02-10T14:23:02.000Z [gateway] something unexpected happened")

    assert event is not None
    assert event.event_type == "system"
    assert event.title == "[gateway] something unexpected happened"
    assert event.agent_id is None


def test_generic_rule_is_last() -> None:
    assert GATEWAY_RULES[-1].component is None


@pytest.mark.parametrize(
    "line",
    [
        "",
        "not a log line",
        "14:23:01 [gateway] missing date",
        "2026-02-10T14:23:01.000Z gateway without brackets",
    ],
)
def test_malformed_gateway_lines_return_none(line: str) -> None:
    assert parse_gateway_line(line) is None


def test_watchdog_alert_is_error_health_alert() -> None:
    event = parse_watchdog_line("2026-02-10 14:23:01 ALERT: gateway not responding")

    assert event is not None
    assert event.event_type == "health_alert"
    assert event.severity == "error"
    assert event.title == "gateway not responding"
    assert event.source == "watchdog"
    assert event.occurred_at == "2026-02-10T14:23:01Z"


def test_watchdog_warn_and_plain_info_lines() -> None:
    warn = parse_watchdog_line("2026-02-10 14:24:00 WARN memory above 80%")
    info = parse_watchdog_line("2026-02-10 14:25:00 OK gateway healthy")
    bare = parse_watchdog_line("2026-02-10 14:26:00 checking gateway")

    assert warn is not None
    assert (warn.event_type, warn.severity) == ("health_alert", "warn")
    assert info is not None
    assert (info.event_type, info.severity, info.title) == ("system", "info", "gateway healthy")
    assert bare is not None
    assert bare.title == "checking gateway"


def test_watchdog_restart_message_overrides_type_but_keeps_severity() -> None:
    event = parse_watchdog_line("2026-02-10 14:23:05 ALERT: Gateway restarted by watchdog")

    assert event is not None
    assert event.event_type == "gateway_restart"
    assert event.severity == "error"


@pytest.mark.parametrize(
    "line",
    [
        "garbage",
        "2026-02-10T14:23:01Z ALERT: wrong timestamp shape",
        "2026-13-45 99:99:99 ALERT: impossible date",
    ],
)
def test_malformed_watchdog_lines_return_none(line: str) -> None:
    assert parse_watchdog_line(line) is None
