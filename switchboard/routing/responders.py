from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.tools import BaseTool
from langgraph.prebuilt import create_react_agent

from switchboard.completion import (
    CompletionService,
    CompletionServiceFault,
    response_text,
    to_langchain_messages,
)
from switchboard.models import Message


class Responder(Protocol):
    async def reply(self, messages: Sequence[Message]) -> str: ...


class CompletionResponder:
    """One completion call under a fixed system directive."""

    def __init__(self, completion_service: CompletionService, system_prompt: str) -> None:
        self._completion_service = completion_service
        self._system_prompt = system_prompt

    async def reply(self, messages: Sequence[Message]) -> str:
        return await self._completion_service.complete(
            [Message.system(self._system_prompt), *messages]
        )


class ReactAgentResponder:
    """Tool-calling agent loop; the final agent message is the reply."""

    def __init__(
        self,
        chat_model: BaseChatModel,
        tools: Sequence[BaseTool],
        system_prompt: str,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._agent = create_react_agent(chat_model, list(tools), prompt=system_prompt)
        self._timeout_seconds = timeout_seconds

    async def reply(self, messages: Sequence[Message]) -> str:
        try:
            result = await asyncio.wait_for(
                self._agent.ainvoke({"messages": to_langchain_messages(messages)}),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise CompletionServiceFault(
                f"Frontline agent timed out after {self._timeout_seconds}s"
            ) from exc
        except CompletionServiceFault:
            raise
        except Exception as exc:
            raise CompletionServiceFault(
                f"Frontline agent failed ({exc.__class__.__name__})"
            ) from exc
        agent_messages = result.get("messages", [])
        if not agent_messages:
            raise CompletionServiceFault("Frontline agent returned no messages")
        return response_text(agent_messages[-1])
