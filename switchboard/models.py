from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Representative(str, Enum):
    BILLING = "BILLING"
    TECHNICAL = "TECHNICAL"
    RESPOND = "RESPOND"
    REFUND = "REFUND"


class RouterState(str, Enum):
    INITIAL = "INITIAL"
    BILLING = "BILLING"
    TECHNICAL = "TECHNICAL"
    REFUND = "REFUND"
    FALLBACK = "FALLBACK"
    END = "END"


class TurnStatus(str, Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(role=Role.ASSISTANT, content=content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one Router execution for a thread.

    ``reply`` is the last assistant message appended by the turn and is
    ``None`` when the turn was suspended or failed. ``visited`` lists the
    router states in the order the turn entered them.
    """

    thread_id: str
    status: TurnStatus
    reply: str | None
    visited: tuple[RouterState, ...] = ()
    awaiting_at: RouterState | None = None
    error: str | None = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    session_id: str | None = Field(default=None, alias="sessionId")


class ChatResponse(BaseModel):
    message: str
    thread_id: str = Field(serialization_alias="threadId")


class AwaitingAuthorizationResponse(BaseModel):
    thread_id: str = Field(serialization_alias="threadId")
    status: str = "awaiting_authorization"
    awaiting_at: RouterState = Field(serialization_alias="awaitingAt")


class ThreadMessage(BaseModel):
    role: Role
    content: str


class ThreadSnapshot(BaseModel):
    thread_id: str = Field(serialization_alias="threadId")
    status: TurnStatus | None
    awaiting_at: RouterState | None = Field(serialization_alias="awaitingAt")
    refund_authorized: bool = Field(serialization_alias="refundAuthorized")
    messages: list[ThreadMessage]
