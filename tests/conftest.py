from __future__ import annotations

import pytest

from switchboard.config import AppConfig


@pytest.fixture(autouse=True)
def reset_conversation_store() -> None:
    from main import _services_by_config, conversation_store

    conversation_store.clear()
    _services_by_config.clear()


@pytest.fixture
def base_config() -> AppConfig:
    return AppConfig(
        gemini_api_key=None,
        completion_backend="deterministic",
        completion_model="gemini-2.5-flash",
        completion_timeout_seconds=30.0,
        completion_max_retries=1,
        classifier_strategy="structured",
        classification_failure_policy="fallback",
        frontline_strategy="direct",
        coverage_data_path="data/coverage/regions.json",
        conversation_state_path=None,
    )
