from __future__ import annotations

import os
from dataclasses import dataclass, replace

COMPLETION_BACKENDS = {"google", "deterministic"}
CLASSIFIER_STRATEGIES = {"structured", "keyword"}
CLASSIFICATION_FAILURE_POLICIES = {"fallback", "respond"}
FRONTLINE_STRATEGIES = {"direct", "agent"}


@dataclass(frozen=True)
class AppConfig:
    gemini_api_key: str | None
    completion_backend: str
    completion_model: str
    completion_timeout_seconds: float
    completion_max_retries: int
    classifier_strategy: str
    classification_failure_policy: str
    frontline_strategy: str
    coverage_data_path: str
    conversation_state_path: str | None


def _read_optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if not value:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _read_int_env(name: str, default: int) -> int:
    value = _read_optional_env(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_float_env(name: str, default: float) -> float:
    value = _read_optional_env(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_choice_env(name: str, choices: set[str], default: str) -> str:
    value = _read_optional_env(name)
    if value is None:
        return default
    normalized = value.lower()
    return normalized if normalized in choices else default


def load_config() -> AppConfig:
    return AppConfig(
        gemini_api_key=_read_optional_env("GEMINI_API_KEY")
        or _read_optional_env("GOOGLE_API_KEY"),
        completion_backend=_read_choice_env(
            "COMPLETION_BACKEND", COMPLETION_BACKENDS, default="google"
        ),
        completion_model=_read_optional_env("COMPLETION_MODEL") or "gemini-2.5-flash",
        completion_timeout_seconds=_read_float_env(
            "COMPLETION_TIMEOUT_SECONDS", default=30.0
        ),
        completion_max_retries=_read_int_env("COMPLETION_MAX_RETRIES", default=1),
        classifier_strategy=_read_choice_env(
            "CLASSIFIER_STRATEGY", CLASSIFIER_STRATEGIES, default="structured"
        ),
        classification_failure_policy=_read_choice_env(
            "CLASSIFICATION_FAILURE_POLICY",
            CLASSIFICATION_FAILURE_POLICIES,
            default="fallback",
        ),
        frontline_strategy=_read_choice_env(
            "FRONTLINE_STRATEGY", FRONTLINE_STRATEGIES, default="direct"
        ),
        coverage_data_path=os.getenv(
            "COVERAGE_DATA_PATH", "data/coverage/regions.json"
        ),
        conversation_state_path=_read_optional_env("CONVERSATION_STATE_PATH"),
    )


def with_runtime_gemini_key(
    config: AppConfig,
    runtime_gemini_api_key: str | None,
) -> AppConfig:
    if runtime_gemini_api_key is None:
        return config
    key = runtime_gemini_api_key.strip()
    if not key:
        return config
    return replace(config, gemini_api_key=key)


def normalize_thread_id(thread_id: object) -> str | None:
    if not isinstance(thread_id, str):
        return None
    normalized = thread_id.strip()
    return normalized if normalized else None
