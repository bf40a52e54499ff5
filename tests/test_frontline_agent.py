from typing import Any

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, ToolMessage

from switchboard.completion import CompletionServiceFault
from switchboard.coverage import (
    COVERAGE_CONFIRMED_MESSAGE,
    build_frontline_tools,
    load_coverage_directory,
)
from switchboard.models import Message
from switchboard.prompts import FRONTLINE_AGENT_SYSTEM_PROMPT
from switchboard.routing import ReactAgentResponder


class _ScriptedToolModel(GenericFakeChatModel):
    seen_inputs: list[Any] = []

    def bind_tools(self, tools, *, tool_choice=None, **kwargs):  # type: ignore[override]
        _ = tools, tool_choice, kwargs
        return self

    async def ainvoke(self, input, config=None, **kwargs):  # type: ignore[override]
        self.seen_inputs.append(input)
        return await super().ainvoke(input, config, **kwargs)


def _tools():
    return build_frontline_tools(load_coverage_directory("data/coverage/regions.json"))


@pytest.mark.asyncio
async def test_frontline_agent_validates_city_before_answering() -> None:
    model = _ScriptedToolModel(
        messages=iter(
            [
                AIMessage(
                    content="",
                    tool_calls=[
                        {
                            "name": "validate_city",
                            "args": {"city": "Medellín"},
                            "id": "call-city",
                        }
                    ],
                ),
                AIMessage(content="Good news, we deliver to Medellín."),
            ]
        )
    )
    responder = ReactAgentResponder(model, _tools(), FRONTLINE_AGENT_SYSTEM_PROMPT)

    reply = await responder.reply([Message.user("Do you ship to Medellín?")])

    assert reply == "Good news, we deliver to Medellín."
    tool_results = [
        message
        for message in _flatten(model.seen_inputs[-1])
        if isinstance(message, ToolMessage)
    ]
    assert [result.content for result in tool_results] == [COVERAGE_CONFIRMED_MESSAGE]


@pytest.mark.asyncio
async def test_frontline_agent_failures_become_completion_faults() -> None:
    class _BrokenModel(_ScriptedToolModel):
        async def ainvoke(self, input, config=None, **kwargs):  # type: ignore[override]
            _ = input, config, kwargs
            raise RuntimeError("provider down")

    responder = ReactAgentResponder(
        _BrokenModel(messages=iter([])), _tools(), FRONTLINE_AGENT_SYSTEM_PROMPT
    )

    with pytest.raises(CompletionServiceFault):
        await responder.reply([Message.user("hola")])


def _flatten(model_input: Any) -> list[Any]:
    if hasattr(model_input, "to_messages"):
        return list(model_input.to_messages())
    if isinstance(model_input, dict):
        return list(model_input.get("messages", []))
    return list(model_input)
