from __future__ import annotations

from langgraph.graph import END, START, StateGraph

from switchboard.classifier import IntentClassifier
from switchboard.models import Representative, RouterState

from .nodes import (
    fallback_node,
    make_billing_support_node,
    make_initial_support_node,
    make_technical_support_node,
    refund_node,
)
from .responders import Responder
from .state import RoutingState

INITIAL_SUPPORT = "initial_support"
BILLING_SUPPORT = "billing_support"
TECHNICAL_SUPPORT = "technical_support"
HANDLE_REFUND = "handle_refund"
FALLBACK = "fallback"

INITIAL_TRANSITIONS: dict[Representative, str] = {
    Representative.BILLING: BILLING_SUPPORT,
    Representative.TECHNICAL: TECHNICAL_SUPPORT,
    Representative.RESPOND: END,
}
BILLING_TRANSITIONS: dict[Representative, str] = {
    Representative.REFUND: HANDLE_REFUND,
    Representative.RESPOND: END,
}
RESUME_ENTRIES: dict[RouterState, str] = {
    RouterState.REFUND: HANDLE_REFUND,
}


def build_routing_graph(
    initial_responder: Responder,
    billing_responder: Responder,
    technical_responder: Responder,
    classifier: IntentClassifier,
    classification_failure_policy: str = "fallback",
):
    graph_builder = StateGraph(RoutingState)

    graph_builder.add_node(
        INITIAL_SUPPORT,
        make_initial_support_node(
            initial_responder, classifier, classification_failure_policy
        ),
    )
    graph_builder.add_node(
        BILLING_SUPPORT,
        make_billing_support_node(
            billing_responder, classifier, classification_failure_policy
        ),
    )
    graph_builder.add_node(
        TECHNICAL_SUPPORT, make_technical_support_node(technical_responder)
    )
    graph_builder.add_node(HANDLE_REFUND, refund_node)
    graph_builder.add_node(FALLBACK, fallback_node)

    graph_builder.add_conditional_edges(
        START, _route_from_start, [INITIAL_SUPPORT, HANDLE_REFUND]
    )
    graph_builder.add_conditional_edges(
        INITIAL_SUPPORT,
        _route_after_initial,
        [BILLING_SUPPORT, TECHNICAL_SUPPORT, FALLBACK, END],
    )
    graph_builder.add_conditional_edges(
        BILLING_SUPPORT,
        _route_after_billing,
        [HANDLE_REFUND, FALLBACK, END],
    )
    graph_builder.add_edge(TECHNICAL_SUPPORT, END)
    graph_builder.add_edge(HANDLE_REFUND, END)
    graph_builder.add_edge(FALLBACK, END)

    return graph_builder.compile()


def _route_from_start(state: RoutingState) -> str:
    resume_from = state.get("resume_from")
    if resume_from is None:
        return INITIAL_SUPPORT
    return RESUME_ENTRIES.get(resume_from, INITIAL_SUPPORT)


def _route_after_initial(state: RoutingState) -> str:
    return _next_node(INITIAL_TRANSITIONS, state.get("next_representative"))


def _route_after_billing(state: RoutingState) -> str:
    return _next_node(BILLING_TRANSITIONS, state.get("next_representative"))


def _next_node(
    transitions: dict[Representative, str],
    decision: Representative | None,
) -> str:
    if decision is None:
        return FALLBACK
    return transitions.get(decision, FALLBACK)
