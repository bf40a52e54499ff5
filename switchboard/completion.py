from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from switchboard.config import AppConfig
from switchboard.intents import classification_material, match_label
from switchboard.models import Message, Representative, Role

LOGGER = logging.getLogger(__name__)


class CompletionServiceFault(RuntimeError):
    pass


@dataclass(frozen=True)
class OutputSchema:
    """Structured-output constraint: one string field restricted to ``labels``."""

    name: str
    description: str
    labels: tuple[Representative, ...]
    field_name: str = "nextRepresentative"
    field_description: str = ""

    def as_tool(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": {
                    self.field_name: {
                        "type": "string",
                        "enum": [label.value for label in self.labels],
                        "description": self.field_description,
                    }
                },
                "required": [self.field_name],
            },
        }


@dataclass(frozen=True)
class StructuredCompletion:
    payload: dict[str, Any] | None
    text: str


class CompletionService(Protocol):
    async def complete(self, messages: Sequence[Message]) -> str: ...

    async def complete_structured(
        self,
        messages: Sequence[Message],
        schema: OutputSchema,
    ) -> StructuredCompletion: ...


class ChatModelCompletionService:
    def __init__(
        self,
        chat_model: BaseChatModel,
        *,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._chat_model = chat_model
        self._timeout_seconds = timeout_seconds

    @property
    def chat_model(self) -> BaseChatModel:
        return self._chat_model

    async def complete(self, messages: Sequence[Message]) -> str:
        response = await self._invoke(self._chat_model, messages)
        return response_text(response)

    async def complete_structured(
        self,
        messages: Sequence[Message],
        schema: OutputSchema,
    ) -> StructuredCompletion:
        try:
            runnable = self._chat_model.bind_tools(
                [schema.as_tool()], tool_choice=schema.name
            )
        except NotImplementedError:
            LOGGER.warning(
                "Chat model does not support tool binding; using raw text output",
                extra={"schema": schema.name},
            )
            runnable = self._chat_model
        response = await self._invoke(runnable, messages)
        return StructuredCompletion(
            payload=_tool_call_payload(response, schema.name),
            text=response_text(response),
        )

    async def _invoke(self, runnable: Any, messages: Sequence[Message]) -> BaseMessage:
        try:
            return await asyncio.wait_for(
                runnable.ainvoke(to_langchain_messages(messages)),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise CompletionServiceFault(
                f"Completion service timed out after {self._timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise CompletionServiceFault(
                f"Completion service failed ({exc.__class__.__name__})"
            ) from exc


class DeterministicCompletionService:
    """Offline backend used when no provider key is configured."""

    async def complete(self, messages: Sequence[Message]) -> str:
        question = _last_user_content(messages)
        if not question:
            return "Hello! How can LangCorp help you today?"
        return f"Thanks for contacting LangCorp. A specialist will follow up on: {question}"

    async def complete_structured(
        self,
        messages: Sequence[Message],
        schema: OutputSchema,
    ) -> StructuredCompletion:
        label = match_label(classification_material(messages), schema.labels)
        if label is None:
            return StructuredCompletion(payload=None, text="")
        return StructuredCompletion(
            payload={schema.field_name: label.value},
            text="",
        )


def build_completion_service(config: AppConfig) -> CompletionService:
    if config.completion_backend == "google" and config.gemini_api_key:
        try:
            return ChatModelCompletionService(
                _build_gemini_chat_model(config),
                timeout_seconds=config.completion_timeout_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Gemini chat model unavailable; using deterministic completions",
                exc_info=exc,
            )
            return DeterministicCompletionService()
    return DeterministicCompletionService()


def _build_gemini_chat_model(config: AppConfig) -> BaseChatModel:
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=config.completion_model,
        google_api_key=config.gemini_api_key,
        temperature=0,
        max_retries=config.completion_max_retries,
    )


def to_langchain_messages(messages: Sequence[Message]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == Role.SYSTEM:
            converted.append(SystemMessage(content=message.content))
        elif message.role == Role.ASSISTANT:
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


def response_text(response: BaseMessage) -> str:
    content = response.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            parts.append(part["text"])
    return "".join(parts)


def _tool_call_payload(response: BaseMessage, tool_name: str) -> dict[str, Any] | None:
    tool_calls = getattr(response, "tool_calls", None)
    if not isinstance(tool_calls, list):
        return None
    for call in tool_calls:
        if not isinstance(call, dict):
            continue
        args = call.get("args")
        if call.get("name") == tool_name and isinstance(args, dict):
            return args
    return None


def _last_user_content(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if message.role == Role.USER:
            return message.content.strip()
    return ""
