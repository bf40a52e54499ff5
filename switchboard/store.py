from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from switchboard.models import Message, Role, RouterState, TurnStatus

LOGGER = logging.getLogger(__name__)


@dataclass
class ConversationState:
    messages: list[Message] = field(default_factory=list)
    refund_authorized: bool = False
    awaiting_at: RouterState | None = None
    status: TurnStatus | None = None

    def snapshot(self) -> ConversationState:
        return ConversationState(
            messages=list(self.messages),
            refund_authorized=self.refund_authorized,
            awaiting_at=self.awaiting_at,
            status=self.status,
        )


class ConversationStore:
    """Thread-keyed conversation states.

    Readers get snapshots; every mutation goes through a method here. Callers
    that read, run a turn and then commit must hold ``lock(thread_id)`` for the
    whole sequence so turns on one thread never interleave.
    """

    def __init__(self, persistence_path: str | None = None) -> None:
        self._states_by_thread: dict[str, ConversationState] = {}
        self._locks_by_thread: dict[str, asyncio.Lock] = {}
        self._persistence_path = Path(persistence_path) if persistence_path else None
        if self._persistence_path is not None:
            self._states_by_thread = _load_persisted_states(self._persistence_path)

    def get(self, thread_id: str) -> ConversationState:
        return self._state(thread_id).snapshot()

    def append(self, thread_id: str, messages: Sequence[Message]) -> None:
        self._state(thread_id).messages.extend(messages)
        self._persist()

    def commit_turn(
        self,
        thread_id: str,
        messages: Sequence[Message],
        status: TurnStatus,
        awaiting_at: RouterState | None,
    ) -> None:
        state = self._state(thread_id)
        state.messages.extend(messages)
        state.status = status
        state.awaiting_at = awaiting_at
        self._persist()

    def set_status(self, thread_id: str, status: TurnStatus) -> None:
        self._state(thread_id).status = status
        self._persist()

    def authorize_refund(self, thread_id: str) -> None:
        self._state(thread_id).refund_authorized = True
        self._persist()

    def lock(self, thread_id: str) -> asyncio.Lock:
        return self._locks_by_thread.setdefault(thread_id, asyncio.Lock())

    def clear(self) -> None:
        self._states_by_thread.clear()
        self._locks_by_thread.clear()
        self._persist()

    def _state(self, thread_id: str) -> ConversationState:
        return self._states_by_thread.setdefault(thread_id, ConversationState())

    def _persist(self) -> None:
        if self._persistence_path is None:
            return
        persist_states(self._persistence_path, self._states_by_thread)


def persist_states(path: Path, states_by_thread: dict[str, ConversationState]) -> None:
    payload = {
        thread_id: _serialize_state(state)
        for thread_id, state in states_by_thread.items()
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".tmp")
    with temp_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False)
    temp_path.replace(path)


def _serialize_state(state: ConversationState) -> dict[str, object]:
    return {
        "messages": [
            {"role": message.role.value, "content": message.content}
            for message in state.messages
        ],
        "refund_authorized": state.refund_authorized,
        "awaiting_at": state.awaiting_at.value if state.awaiting_at else None,
        "status": state.status.value if state.status else None,
    }


def _deserialize_message(payload: object) -> Message | None:
    if not isinstance(payload, dict):
        return None
    role = payload.get("role")
    content = payload.get("content")
    if not isinstance(role, str) or not isinstance(content, str):
        return None
    if role not in {item.value for item in Role}:
        return None
    return Message(role=Role(role), content=content)


def _deserialize_state(payload: object) -> ConversationState | None:
    if not isinstance(payload, dict):
        return None
    raw_messages = payload.get("messages")
    if not isinstance(raw_messages, list):
        return None
    messages = [
        message for row in raw_messages if (message := _deserialize_message(row))
    ]
    awaiting_at = payload.get("awaiting_at")
    status = payload.get("status")
    return ConversationState(
        messages=messages,
        refund_authorized=payload.get("refund_authorized") is True,
        awaiting_at=(
            RouterState(awaiting_at)
            if awaiting_at in {item.value for item in RouterState}
            else None
        ),
        status=(
            TurnStatus(status) if status in {item.value for item in TurnStatus} else None
        ),
    )


def _load_persisted_states(path: Path) -> dict[str, ConversationState]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, ValueError) as exc:
        LOGGER.warning(
            "Persisted conversation state unreadable; starting empty",
            extra={"path": str(path)},
            exc_info=exc,
        )
        return {}
    if not isinstance(payload, dict):
        return {}
    states: dict[str, ConversationState] = {}
    for thread_id, row in payload.items():
        if not isinstance(thread_id, str):
            continue
        state = _deserialize_state(row)
        if state is None:
            continue
        states[thread_id] = state
    return states
