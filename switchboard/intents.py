from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from switchboard.models import Message, Representative, Role

LABEL_PATTERNS: dict[Representative, re.Pattern[str]] = {
    Representative.BILLING: re.compile(r"billing|facturaci[oó]n", re.IGNORECASE),
    Representative.TECHNICAL: re.compile(r"technical|t[eé]cnico", re.IGNORECASE),
    Representative.REFUND: re.compile(r"refund|reembolso", re.IGNORECASE),
}
_QUOTED_TEXT = re.compile(r"<text>\s*(.*?)\s*</text>", re.DOTALL)


def match_label(
    text: str,
    allowed: Iterable[Representative],
) -> Representative | None:
    """Return the first allowed label whose keyword pattern occurs in ``text``.

    ``RESPOND`` has no pattern; it is the answer when nothing else matches and
    it is part of the allowed set.
    """
    allowed_labels = tuple(allowed)
    for label in allowed_labels:
        pattern = LABEL_PATTERNS.get(label)
        if pattern is not None and pattern.search(text):
            return label
    if Representative.RESPOND in allowed_labels:
        return Representative.RESPOND
    return None


def classification_material(messages: Sequence[Message]) -> str:
    """Return the text a keyword rule should judge for a classification prompt.

    The last message is the extraction instruction. When it quotes a passage in
    ``<text>`` tags that passage is the material; otherwise it is the most
    recent assistant reply before the instruction.
    """
    if not messages:
        return ""
    *context, instruction = messages
    quoted = _QUOTED_TEXT.search(instruction.content)
    if quoted:
        return quoted.group(1)
    for message in reversed(context):
        if message.role == Role.ASSISTANT:
            return message.content
    return "\n".join(
        message.content for message in context if message.role != Role.SYSTEM
    )
