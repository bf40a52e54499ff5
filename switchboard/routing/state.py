from __future__ import annotations

import operator
from typing import Annotated, Any, TypedDict

from switchboard.models import Message, Representative, RouterState


class RoutingState(TypedDict, total=False):
    request_id: str
    thread_id: str
    messages: Annotated[list[Message], operator.add]
    next_representative: Representative | None
    refund_authorized: bool
    resume_from: RouterState | None
    awaiting_at: RouterState | None
    visited: Annotated[list[RouterState], operator.add]
    telemetry_events: Annotated[list[dict[str, Any]], operator.add]


def create_initial_state(
    thread_id: str,
    messages: list[Message],
    request_id: str = "unknown",
    refund_authorized: bool = False,
    resume_from: RouterState | None = None,
) -> RoutingState:
    return {
        "request_id": request_id,
        "thread_id": thread_id,
        "messages": list(messages),
        "next_representative": None,
        "refund_authorized": refund_authorized,
        "resume_from": resume_from,
        "awaiting_at": None,
        "visited": [],
        "telemetry_events": [],
    }
