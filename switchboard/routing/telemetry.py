from __future__ import annotations

import json
import logging
from typing import Any

from switchboard.models import RouterState, TurnStatus

DEFAULT_TELEMETRY_TAG = "support-routing"


def build_graph_invoke_config(request_id: str, thread_id: str) -> dict[str, Any]:
    return {
        "tags": [DEFAULT_TELEMETRY_TAG],
        "metadata": {
            "request_id": request_id,
            "thread_id": thread_id,
            "component": "support_router",
        },
    }


def emit_routing_telemetry(
    state: dict[str, Any],
    status: TurnStatus,
    logger: logging.Logger | None = None,
) -> None:
    active_logger = logger or logging.getLogger(__name__)
    base = {
        "request_id": _text_or_unknown(state.get("request_id")),
        "thread_id": _text_or_unknown(state.get("thread_id")),
        "status": status.value,
        "path": _path(state.get("visited")),
    }
    for event in _events(state.get("telemetry_events")):
        payload = {**base, **event}
        active_logger.info("routing_event %s", json.dumps(payload, sort_keys=True))


def _text_or_unknown(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return "unknown"


def _path(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.value for item in value if isinstance(item, RouterState)]


def _events(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [event for event in value if isinstance(event, dict)]
