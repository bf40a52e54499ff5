from __future__ import annotations

import logging
from collections.abc import Sequence
from time import perf_counter

from switchboard.classifier import (
    BILLING_SCHEMA,
    FRONTLINE_SCHEMA,
    ClassificationFault,
    IntentClassifier,
)
from switchboard.completion import OutputSchema
from switchboard.models import Message, Representative, Role, RouterState
from switchboard.prompts import (
    BILLING_CATEGORIZATION_SYSTEM_PROMPT,
    CLASSIFICATION_FALLBACK_MESSAGE,
    FRONTLINE_CATEGORIZATION_INSTRUCTION,
    FRONTLINE_CATEGORIZATION_SYSTEM_PROMPT,
    REFUND_PROCESSED_MESSAGE,
    build_billing_categorization_instruction,
)

from .responders import Responder
from .state import RoutingState

LOGGER = logging.getLogger(__name__)


def trim_history(messages: Sequence[Message]) -> list[Message]:
    """Drop a trailing assistant message so the user's turn is the last entry."""
    if messages and messages[-1].role == Role.ASSISTANT:
        return list(messages[:-1])
    return list(messages)


def make_initial_support_node(
    responder: Responder,
    classifier: IntentClassifier,
    classification_failure_policy: str,
):
    async def _node(state: RoutingState) -> RoutingState:
        messages = state.get("messages", [])
        started = perf_counter()
        reply = Message.assistant(await responder.reply(messages))
        decision, events = await _classify(
            classifier,
            [
                Message.system(FRONTLINE_CATEGORIZATION_SYSTEM_PROMPT),
                *messages,
                reply,
                Message.user(FRONTLINE_CATEGORIZATION_INSTRUCTION),
            ],
            FRONTLINE_SCHEMA,
            RouterState.INITIAL,
            classification_failure_policy,
        )
        return {
            "messages": [reply],
            "next_representative": decision,
            "visited": [RouterState.INITIAL],
            "telemetry_events": [
                *events,
                _handler_event(RouterState.INITIAL, decision, started),
            ],
        }

    return _node


def make_billing_support_node(
    responder: Responder,
    classifier: IntentClassifier,
    classification_failure_policy: str,
):
    async def _node(state: RoutingState) -> RoutingState:
        trimmed = trim_history(state.get("messages", []))
        started = perf_counter()
        reply = Message.assistant(await responder.reply(trimmed))
        decision, events = await _classify(
            classifier,
            [
                Message.system(BILLING_CATEGORIZATION_SYSTEM_PROMPT),
                Message.user(build_billing_categorization_instruction(reply.content)),
            ],
            BILLING_SCHEMA,
            RouterState.BILLING,
            classification_failure_policy,
        )
        return {
            "messages": [reply],
            "next_representative": decision,
            "visited": [RouterState.BILLING],
            "telemetry_events": [
                *events,
                _handler_event(RouterState.BILLING, decision, started),
            ],
        }

    return _node


def make_technical_support_node(responder: Responder):
    async def _node(state: RoutingState) -> RoutingState:
        trimmed = trim_history(state.get("messages", []))
        started = perf_counter()
        reply = Message.assistant(await responder.reply(trimmed))
        return {
            "messages": [reply],
            "next_representative": None,
            "visited": [RouterState.TECHNICAL],
            "telemetry_events": [
                _handler_event(RouterState.TECHNICAL, None, started),
            ],
        }

    return _node


def refund_node(state: RoutingState) -> RoutingState:
    if not state.get("refund_authorized", False):
        LOGGER.info(
            "Human authorization required for refund",
            extra={"thread_id": state.get("thread_id")},
        )
        return {
            "awaiting_at": RouterState.REFUND,
            "visited": [RouterState.REFUND],
            "telemetry_events": [{"event": "refund_authorization_pending"}],
        }
    return {
        "messages": [Message.assistant(REFUND_PROCESSED_MESSAGE)],
        "awaiting_at": None,
        "visited": [RouterState.REFUND],
        "telemetry_events": [{"event": "refund_processed"}],
    }


def fallback_node(state: RoutingState) -> RoutingState:
    return {
        "messages": [Message.assistant(CLASSIFICATION_FALLBACK_MESSAGE)],
        "visited": [RouterState.FALLBACK],
        "telemetry_events": [
            {
                "event": "fallback_reply",
                "after": _last_visited(state),
            }
        ],
    }


async def _classify(
    classifier: IntentClassifier,
    messages: list[Message],
    schema: OutputSchema,
    router_state: RouterState,
    classification_failure_policy: str,
) -> tuple[Representative | None, list[dict[str, object]]]:
    try:
        return await classifier.classify(messages, schema), []
    except ClassificationFault as exc:
        LOGGER.warning(
            "Classification failed",
            extra={
                "router_state": router_state.value,
                "policy": classification_failure_policy,
            },
            exc_info=exc,
        )
        decision = (
            Representative.RESPOND
            if classification_failure_policy == "respond"
            else None
        )
        return decision, [
            {
                "event": "classification_failed",
                "state": router_state.value,
                "policy": classification_failure_policy,
                "error": str(exc),
            }
        ]


def _handler_event(
    router_state: RouterState,
    decision: Representative | None,
    started: float,
) -> dict[str, object]:
    return {
        "event": "handler_completed",
        "state": router_state.value,
        "decision": decision.value if decision is not None else None,
        "duration_ms": int((perf_counter() - started) * 1000),
    }


def _last_visited(state: RoutingState) -> str | None:
    visited = state.get("visited", [])
    if not visited:
        return None
    return visited[-1].value
