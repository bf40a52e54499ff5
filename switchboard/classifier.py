from __future__ import annotations

import json
import re
from collections.abc import Sequence
from typing import Any, Protocol

from switchboard.completion import CompletionService, OutputSchema
from switchboard.intents import classification_material, match_label
from switchboard.models import Message, Representative

FRONTLINE_SCHEMA = OutputSchema(
    name="categorize",
    description=(
        "Determines whether the support representative wants to route the user "
        "to billing, technical, or just respond conversationally."
    ),
    labels=(
        Representative.BILLING,
        Representative.TECHNICAL,
        Representative.RESPOND,
    ),
    field_description=(
        "Indicates the routing decision: 'BILLING' for billing team, 'TECHNICAL' "
        "for technical team, or 'RESPOND' for a conversational response."
    ),
)

BILLING_SCHEMA = OutputSchema(
    name="categorizeBilling",
    description=(
        "Determines whether the billing support representative wants to refund "
        "the user or just respond normally."
    ),
    labels=(Representative.REFUND, Representative.RESPOND),
    field_description=(
        "Indicates if the representative wants to refund the user (REFUND) or "
        "just respond (RESPOND)."
    ),
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class ClassificationFault(ValueError):
    pass


class IntentClassifier(Protocol):
    async def classify(
        self,
        messages: Sequence[Message],
        schema: OutputSchema,
    ) -> Representative: ...


class StructuredIntentClassifier:
    """Classifies with a schema-constrained completion.

    The structured payload wins; when the service ignores the constraint the raw
    text is parsed as the JSON object carrying the label. Anything else is a
    ``ClassificationFault``.
    """

    def __init__(self, completion_service: CompletionService) -> None:
        self._completion_service = completion_service

    async def classify(
        self,
        messages: Sequence[Message],
        schema: OutputSchema,
    ) -> Representative:
        completion = await self._completion_service.complete_structured(
            messages, schema
        )
        if completion.payload is not None:
            label = parse_label(completion.payload, schema)
            if label is not None:
                return label

        payload = parse_json_object(completion.text)
        if payload is not None:
            label = parse_label(payload, schema)
            if label is not None:
                return label

        raise ClassificationFault(
            f"Unparseable {schema.name} output: {completion.text[:200]!r}"
        )


class KeywordIntentClassifier:
    """Rule-based classifier applying keyword patterns to the classified text."""

    async def classify(
        self,
        messages: Sequence[Message],
        schema: OutputSchema,
    ) -> Representative:
        label = match_label(classification_material(messages), schema.labels)
        if label is None:
            raise ClassificationFault(f"No keyword rule matched for {schema.name}")
        return label


def build_intent_classifier(
    strategy: str,
    completion_service: CompletionService,
) -> IntentClassifier:
    if strategy == "keyword":
        return KeywordIntentClassifier()
    return StructuredIntentClassifier(completion_service)


def parse_label(payload: dict[str, Any], schema: OutputSchema) -> Representative | None:
    value = payload.get(schema.field_name)
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    for label in schema.labels:
        if label.value == normalized:
            return label
    return None


def parse_json_object(text: str) -> dict[str, Any] | None:
    stripped = text.strip()
    fenced = _CODE_FENCE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        payload = json.loads(stripped)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload
