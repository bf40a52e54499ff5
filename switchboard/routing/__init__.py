from .graph import build_routing_graph
from .nodes import trim_history
from .responders import CompletionResponder, ReactAgentResponder, Responder
from .state import RoutingState, create_initial_state
from .telemetry import build_graph_invoke_config, emit_routing_telemetry

__all__ = [
    "CompletionResponder",
    "ReactAgentResponder",
    "Responder",
    "RoutingState",
    "build_graph_invoke_config",
    "build_routing_graph",
    "create_initial_state",
    "emit_routing_telemetry",
    "trim_history",
]
