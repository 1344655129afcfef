"""Extract model usage and spend from agent usage JSONL lines."""

from __future__ import annotations

import json
from collections.abc import Mapping

from mission_ingest.core.time import utcnow_iso
from mission_ingest.services.ingestion.records import COST_PROVIDERS, CostProvider, ParsedCostEvent

_USAGE_KEYS = ("usage", "costEvent", "cost")
_INPUT_TOKEN_KEYS = ("input_tokens", "inputTokens", "prompt_tokens")
_OUTPUT_TOKEN_KEYS = ("output_tokens", "outputTokens", "completion_tokens")
_COST_KEYS = ("cost_usd", "costUsd", "total_cost")

MODEL_PROVIDERS: dict[str, CostProvider] = {
    "opus-4-5": "anthropic",
    "claude-opus-4-5": "anthropic",
    "sonnet-4-5": "anthropic",
    "claude-sonnet-4-5": "anthropic",
    "haiku-4-5": "anthropic",
    "claude-haiku-4-5": "anthropic",
    "gpt-4o": "openai",
    "gpt-4-turbo": "openai",
    "o1": "openai",
    "o3": "openai",
    "gemini-3-flash": "google",
    "gemini-2.5-pro": "google",
    "grok-3": "xai",
    "deepseek-r1": "together",
    "kimi-k2": "together",
}


def infer_provider(model: str) -> CostProvider:
    """Map a model name to its billing provider."""
    exact = MODEL_PROVIDERS.get(model)
    if exact is not None:
        return exact
    for key, provider in MODEL_PROVIDERS.items():
        if key in model:
            return provider
    if model.startswith("claude") or any(name in model for name in ("opus", "sonnet", "haiku")):
        return "anthropic"
    if model.startswith(("gpt", "o1", "o3")):
        return "openai"
    if model.startswith("gemini"):
        return "google"
    if model.startswith("grok"):
        return "xai"
    return "other"


def normalize_provider(value: object, model: str) -> CostProvider:
    """Return an explicit provider when it is known, else infer from the model."""
    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate in COST_PROVIDERS:
            return candidate  # type: ignore[return-value]
        if candidate:
            return "other"
    return infer_provider(model)


def _first_present(mapping: Mapping[str, object], keys: tuple[str, ...]) -> object | None:
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return None


def _number(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_cost_line(line: str, agent_id: str | None) -> ParsedCostEvent | None:
    """Return a cost record for lines with a usage block and non-zero usage."""
    try:
        data = json.loads(line)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None

    usage = _first_present(data, _USAGE_KEYS)
    if not isinstance(usage, dict):
        return None

    input_tokens = int(_number(_first_present(usage, _INPUT_TOKEN_KEYS)))
    output_tokens = int(_number(_first_present(usage, _OUTPUT_TOKEN_KEYS)))
    cost_usd = float(_number(_first_present(usage, _COST_KEYS)))
    if input_tokens == 0 and output_tokens == 0 and cost_usd == 0:
        return None

    model = _optional_text(usage.get("model")) or _optional_text(data.get("model")) or "unknown"
    occurred_at = _optional_text(data.get("timestamp")) or _optional_text(data.get("occurred_at")) or utcnow_iso()
    return ParsedCostEvent(
        agent_id=agent_id,
        model=model,
        provider=normalize_provider(usage.get("provider"), model),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost_usd=cost_usd,
        session_id=_optional_text(usage.get("session_id")) or _optional_text(data.get("session_id")),
        occurred_at=occurred_at,
    )
