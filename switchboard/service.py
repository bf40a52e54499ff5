from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import uuid4

from switchboard.classifier import IntentClassifier, build_intent_classifier
from switchboard.completion import (
    ChatModelCompletionService,
    CompletionService,
    CompletionServiceFault,
    build_completion_service,
)
from switchboard.config import AppConfig
from switchboard.coverage import build_frontline_tools, load_coverage_directory
from switchboard.models import Message, Role, RouterState, TurnResult, TurnStatus
from switchboard.prompts import (
    BILLING_SYSTEM_PROMPT,
    FRONTLINE_AGENT_SYSTEM_PROMPT,
    FRONTLINE_SYSTEM_PROMPT,
    TECHNICAL_SYSTEM_PROMPT,
)
from switchboard.routing import (
    CompletionResponder,
    ReactAgentResponder,
    Responder,
    RoutingState,
    build_graph_invoke_config,
    build_routing_graph,
    create_initial_state,
    emit_routing_telemetry,
)
from switchboard.store import ConversationStore

LOGGER = logging.getLogger(__name__)


class NothingToResume(ValueError):
    pass


class SupportService:
    def __init__(
        self,
        config: AppConfig,
        store: ConversationStore,
        completion_service: CompletionService | None = None,
        classifier: IntentClassifier | None = None,
        frontline_responder: Responder | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._completion_service = completion_service or build_completion_service(
            config
        )
        self._classifier = classifier or build_intent_classifier(
            config.classifier_strategy, self._completion_service
        )
        self._routing_graph = build_routing_graph(
            initial_responder=frontline_responder
            or _build_frontline_responder(config, self._completion_service),
            billing_responder=CompletionResponder(
                self._completion_service, BILLING_SYSTEM_PROMPT
            ),
            technical_responder=CompletionResponder(
                self._completion_service, TECHNICAL_SYSTEM_PROMPT
            ),
            classifier=self._classifier,
            classification_failure_policy=config.classification_failure_policy,
        )

    @property
    def store(self) -> ConversationStore:
        return self._store

    async def run_turn(self, thread_id: str, message: str) -> TurnResult:
        async with self._store.lock(thread_id):
            snapshot = self._store.get(thread_id)
            state = create_initial_state(
                thread_id=thread_id,
                messages=[*snapshot.messages, Message.user(message)],
                request_id=uuid4().hex,
                refund_authorized=snapshot.refund_authorized,
            )
            return await self._execute(state, committed_count=len(snapshot.messages))

    async def resume(self, thread_id: str) -> TurnResult:
        async with self._store.lock(thread_id):
            return await self._resume_locked(thread_id)

    async def authorize_refund(self, thread_id: str) -> TurnResult:
        """Record the human approval and resume the pending refund.

        Threads not suspended at the refund step are rejected before the flag
        is set, so an approval never carries over to a later refund request.
        """
        async with self._store.lock(thread_id):
            if self._store.get(thread_id).awaiting_at != RouterState.REFUND:
                raise NothingToResume(
                    f"Thread {thread_id!r} has no refund awaiting authorization"
                )
            self._store.authorize_refund(thread_id)
            return await self._resume_locked(thread_id)

    async def _resume_locked(self, thread_id: str) -> TurnResult:
        snapshot = self._store.get(thread_id)
        if snapshot.awaiting_at is None:
            raise NothingToResume(f"Thread {thread_id!r} is not awaiting input")
        state = create_initial_state(
            thread_id=thread_id,
            messages=snapshot.messages,
            request_id=uuid4().hex,
            refund_authorized=snapshot.refund_authorized,
            resume_from=snapshot.awaiting_at,
        )
        return await self._execute(state, committed_count=len(snapshot.messages))

    async def _execute(self, state: RoutingState, committed_count: int) -> TurnResult:
        thread_id = state["thread_id"]
        request_id = state["request_id"]
        self._store.set_status(thread_id, TurnStatus.RUNNING)
        try:
            result_state = await self._routing_graph.ainvoke(
                state,
                config=build_graph_invoke_config(request_id, thread_id),
            )
        except CompletionServiceFault as exc:
            LOGGER.error(
                "Turn failed; nothing appended",
                extra={"thread_id": thread_id, "request_id": request_id},
                exc_info=exc,
            )
            self._store.set_status(thread_id, TurnStatus.FAILED)
            return TurnResult(
                thread_id=thread_id,
                status=TurnStatus.FAILED,
                reply=None,
                error=str(exc),
            )
        except Exception:
            self._store.set_status(thread_id, TurnStatus.FAILED)
            raise

        new_messages = list(result_state.get("messages", []))[committed_count:]
        awaiting_at = result_state.get("awaiting_at")
        status = TurnStatus.SUSPENDED if awaiting_at is not None else TurnStatus.DONE
        self._store.commit_turn(thread_id, new_messages, status, awaiting_at)
        emit_routing_telemetry(result_state, status)
        return TurnResult(
            thread_id=thread_id,
            status=status,
            reply=_last_reply(new_messages) if status == TurnStatus.DONE else None,
            visited=_visited(result_state),
            awaiting_at=awaiting_at,
        )


def _build_frontline_responder(
    config: AppConfig,
    completion_service: CompletionService,
) -> Responder:
    if config.frontline_strategy != "agent":
        return CompletionResponder(completion_service, FRONTLINE_SYSTEM_PROMPT)
    if not isinstance(completion_service, ChatModelCompletionService):
        LOGGER.warning(
            "Agent frontline strategy needs a chat model; using direct completions",
            extra={"completion_backend": config.completion_backend},
        )
        return CompletionResponder(completion_service, FRONTLINE_SYSTEM_PROMPT)
    return ReactAgentResponder(
        completion_service.chat_model,
        build_frontline_tools(load_coverage_directory(config.coverage_data_path)),
        FRONTLINE_AGENT_SYSTEM_PROMPT,
        timeout_seconds=config.completion_timeout_seconds,
    )


def _last_reply(messages: Sequence[Message]) -> str | None:
    for message in reversed(messages):
        if message.role == Role.ASSISTANT:
            return message.content
    return None


def _visited(state: dict[str, object]) -> tuple[RouterState, ...]:
    visited = state.get("visited")
    if not isinstance(visited, list):
        return ()
    return tuple(item for item in visited if isinstance(item, RouterState))
