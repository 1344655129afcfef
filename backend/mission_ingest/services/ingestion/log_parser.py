"""Parse gateway.log and watchdog.log lines into activity events.

Gateway lines look like ``2026-02-06T22:24:45.158Z [component] message`` and
are dispatched through an ordered rule table: the first rule whose component
and pattern match builds the event, and a catch-all rule at the end turns any
other ``[component] message`` into a generic ``system`` event.

Watchdog lines look like ``2026-02-01 08:18:47 ALERT: message``.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from mission_ingest.services.ingestion.records import EventSeverity, EventType, ParsedEvent

_GATEWAY_RE = re.compile(r"^(?P<ts>\d{4}-\d{2}-\d{2}T[\d:.]+Z)\s+\[(?P<component>[^\]]+)\]\s+(?P<message>.+)$")
_WATCHDOG_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})\s+(?P<time>\d{2}:\d{2}:\d{2})\s+"
    r"(?:(?P<level>ALERT|WARN|INFO|OK)\b)?:?\s*(?P<message>.+)$",
)

_TELEGRAM_START_RE = re.compile(r"^\[(?P<account>[^\]]+)\]\s+starting provider\s+\((?P<bot>@[^)]+)\)")
_GATEWAY_LISTEN_RE = re.compile(r"^listening on\s+(?P<address>.+)\s+\(PID\s+(?P<pid>\d+)\)")
_SIGNAL_RE = re.compile(r"^signal\s+(?P<signal>SIG\w+)\s+received")
_MODEL_RE = re.compile(r"^agent model:\s+(?P<model>.+)")
_RELOAD_RE = re.compile(r"^config change detected; evaluating reload\s+\((?P<fields>.+)\)")
_PLUGIN_RE = re.compile(r"^Plugin registered\s+\((?P<summary>.+)\)")
_MATCH_ANY_RE = re.compile(r"")

GATEWAY_SOURCE = "gateway"
WATCHDOG_SOURCE = "watchdog"


def _gateway_event(
    *,
    occurred_at: str,
    event_type: EventType,
    title: str,
    detail: str | None = None,
    severity: EventSeverity = "info",
    agent_id: str | None = None,
) -> ParsedEvent:
    return ParsedEvent(
        agent_id=agent_id,
        event_type=event_type,
        source=GATEWAY_SOURCE,
        title=title,
        detail=detail,
        severity=severity,
        occurred_at=occurred_at,
    )


def _bot_start(match: re.Match[str], _component: str, _message: str, occurred_at: str) -> ParsedEvent:
    return _gateway_event(
        occurred_at=occurred_at,
        event_type="bot_start",
        title=f"{match['bot']} started",
        agent_id=match["account"],
    )


def _gateway_listening(match: re.Match[str], _component: str, _message: str, occurred_at: str) -> ParsedEvent:
    return _gateway_event(
        occurred_at=occurred_at,
        event_type="system",
        title=f"Gateway started (PID {match['pid']})",
        detail=match["address"],
    )


def _gateway_signal(match: re.Match[str], _component: str, _message: str, occurred_at: str) -> ParsedEvent:
    signal = match["signal"]
    is_shutdown = signal == "SIGTERM"
    return _gateway_event(
        occurred_at=occurred_at,
        event_type="bot_stop" if is_shutdown else "reload",
        title=f"Gateway received {signal}",
        severity="warn" if is_shutdown else "info",
    )


def _agent_model(match: re.Match[str], _component: str, _message: str, occurred_at: str) -> ParsedEvent:
    return _gateway_event(
        occurred_at=occurred_at,
        event_type="system",
        title=f"Agent model: {match['model']}",
    )


def _config_reload(match: re.Match[str], _component: str, _message: str, occurred_at: str) -> ParsedEvent:
    return _gateway_event(
        occurred_at=occurred_at,
        event_type="config_change",
        title="Config change detected",
        detail=match["fields"],
    )


def _plugin_loaded(match: re.Match[str], _component: str, _message: str, occurred_at: str) -> ParsedEvent:
    return _gateway_event(
        occurred_at=occurred_at,
        event_type="plugin_load",
        title=f"Plugin loaded ({match['summary']})",
    )


def _heartbeat(_match: re.Match[str], _component: str, message: str, occurred_at: str) -> ParsedEvent:
    return _gateway_event(
        occurred_at=occurred_at,
        event_type="heartbeat",
        title=f"Heartbeat {message}",
    )


def _generic_system(_match: re.Match[str], component: str, message: str, occurred_at: str) -> ParsedEvent:
    return _gateway_event(
        occurred_at=occurred_at,
        event_type="system",
        title=f"[{component}] {message}",
    )


@dataclass(frozen=True, slots=True)
class GatewayRule:
    """One ``(component, pattern) -> event`` dispatch entry.

    ``component=None`` matches every component.
    """

    component: str | None
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str], str, str, str], ParsedEvent]

    def apply(self, component: str, message: str, occurred_at: str) -> ParsedEvent | None:
        if self.component is not None and self.component != component:
            return None
        match = self.pattern.match(message)
        if match is None:
            return None
        return self.build(match, component, message, occurred_at)


GATEWAY_RULES: tuple[GatewayRule, ...] = (
    GatewayRule("telegram", _TELEGRAM_START_RE, _bot_start),
    GatewayRule("gateway", _GATEWAY_LISTEN_RE, _gateway_listening),
    GatewayRule("gateway", _SIGNAL_RE, _gateway_signal),
    GatewayRule("gateway", _MODEL_RE, _agent_model),
    GatewayRule("reload", _RELOAD_RE, _config_reload),
    GatewayRule("plugins", _PLUGIN_RE, _plugin_loaded),
    GatewayRule("heartbeat", _MATCH_ANY_RE, _heartbeat),
    # Must stay last.
    GatewayRule(None, _MATCH_ANY_RE, _generic_system),
)


def parse_gateway_line(line: str) -> ParsedEvent | None:
    """Parse one gateway log line, or return ``None`` when it is not one."""
    match = _GATEWAY_RE.match(line.strip())
    if match is None:
        return None
    component = match["component"]
    message = match["message"]
    occurred_at = match["ts"]
    for rule in GATEWAY_RULES:
        event = rule.apply(component, message, occurred_at)
        if event is not None:
            return event
    return None


def _watchdog_timestamp(date_part: str, time_part: str) -> str | None:
    try:
        parsed = datetime.strptime(f"{date_part} {time_part}", "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_watchdog_line(line: str) -> ParsedEvent | None:
    """Parse one watchdog log line; timestamps are read as UTC."""
    match = _WATCHDOG_RE.match(line.strip())
    if match is None:
        return None
    occurred_at = _watchdog_timestamp(match["date"], match["time"])
    if occurred_at is None:
        return None

    level = match["level"]
    message = match["message"]
    severity: EventSeverity = "info"
    event_type: EventType = "system"
    if level == "ALERT":
        severity = "error"
        event_type = "health_alert"
    elif level == "WARN":
        severity = "warn"
        event_type = "health_alert"

    if "restarted" in message or "Restarted" in message:
        event_type = "gateway_restart"

    return ParsedEvent(
        agent_id=None,
        event_type=event_type,
        source=WATCHDOG_SOURCE,
        title=message,
        detail=None,
        severity=severity,
        occurred_at=occurred_at,
    )
