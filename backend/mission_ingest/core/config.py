"""Application settings and environment configuration loading."""

from __future__ import annotations

from pathlib import Path
from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mission_ingest.core.errors import StartupConfigError

BACKEND_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = BACKEND_ROOT / ".env"
DEFAULT_OPENCLAW_HOME = Path.home() / ".openclaw"

# Relative to ``openclaw_home`` when the explicit path setting is left empty.
_DEFAULT_RELATIVE_PATHS = {
    "openclaw_config": "openclaw.json",
    "gateway_log": "logs/gateway.log",
    "watchdog_log": "logs/watchdog.log",
    "sessions_log": "logs/sessions.jsonl",
    "task_queue_md": "task-queue.md",
    "cron_jobs_json": "cron/jobs.json",
}


class Settings(BaseSettings):
    """Typed runtime configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        # Load `backend/.env` regardless of current working directory.
        env_file=[DEFAULT_ENV_FILE, ".env"],
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "dev"
    database_url: str = ""
    db_auto_create: bool = True

    # Shared secret for the inbound ingest endpoint.
    ingest_api_key: str = ""

    # OpenClaw runtime files
    openclaw_home: str = str(DEFAULT_OPENCLAW_HOME)
    openclaw_config: str = ""
    gateway_log: str = ""
    watchdog_log: str = ""
    sessions_log: str = ""
    task_queue_md: str = ""
    cron_jobs_json: str = ""
    # Per-agent usage logs: "agent_id=/path/to/usage.jsonl,other=/path".
    cost_log_paths: str = ""
    cron_schedule_tz: str = "America/Chicago"

    # Watch cadence
    log_debounce_seconds: float = Field(default=0.5, ge=0)
    config_debounce_seconds: float = Field(default=1.0, ge=0)
    watch_poll_interval_seconds: float = Field(default=0.25, gt=0)
    persist_timeout_seconds: float = Field(default=15.0, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"
    log_use_utc: bool = False

    @model_validator(mode="after")
    def _defaults(self) -> Self:
        home = Path(self.openclaw_home).expanduser()
        for field_name, relative in _DEFAULT_RELATIVE_PATHS.items():
            if not str(getattr(self, field_name)).strip():
                setattr(self, field_name, str(home / relative))
        return self

    def cost_logs(self) -> tuple[tuple[str, str], ...]:
        """Return normalized ``(agent_id, path)`` pairs for per-agent usage logs."""
        values: list[tuple[str, str]] = []
        for raw in self.cost_log_paths.split(","):
            agent_id, sep, path = raw.partition("=")
            agent_id = agent_id.strip()
            path = path.strip()
            if not sep or not agent_id or not path:
                continue
            pair = (agent_id, str(Path(path).expanduser()))
            if pair not in values:
                values.append(pair)
        return tuple(values)


def ensure_startup_ready(config: Settings) -> None:
    """Raise ``StartupConfigError`` when connection credentials are missing."""
    missing: list[str] = []
    if not config.database_url.strip():
        missing.append("DATABASE_URL")
    if missing:
        raise StartupConfigError(missing)


settings = Settings()
