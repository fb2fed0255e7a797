"""Message hygiene applied to chat histories before dispatch"""

import logging
from dataclasses import dataclass
from typing import Any, Literal, TypedDict

from llmstream.errors import ValidationError

logger = logging.getLogger(__name__)

VALID_ROLES = ("user", "assistant", "system")
REASONING_FIELD = "reasoning_content"


class Message(TypedDict, total=False):
    """Chat message as exchanged with providers"""
    role: Literal["user", "assistant", "system"]
    content: str
    reasoning_content: str


def validate_and_clean(messages: list[Any]) -> list[Message]:
    """Drop entries with unknown roles, non-string or blank content"""
    cleaned = []
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        if msg.get("role") not in VALID_ROLES:
            continue
        content = msg.get("content")
        if not isinstance(content, str) or not content.strip():
            continue
        cleaned.append(msg)

    removed = len(messages) - len(cleaned)
    if removed:
        logger.warning(f"Removed {removed} invalid messages")
    return cleaned


def collapse_consecutive_same_role(messages: list[Message]) -> list[Message]:
    """Keep only the newest of each run of same-role messages"""
    cleaned: list[Message] = []
    collapsed = 0

    for msg in messages:
        if cleaned and cleaned[-1].get("role") == msg.get("role"):
            collapsed += 1
            cleaned[-1] = msg
        else:
            cleaned.append(msg)

    if collapsed:
        logger.warning(f"Removed {collapsed} consecutive duplicate messages")
    return cleaned


@dataclass
class OrderCheck:
    valid: bool
    index: int | None = None
    error: str | None = None

    def raise_for_error(self):
        if not self.valid:
            raise ValidationError(self.error or "Invalid message order", index=self.index)


def validate_order(messages: list[Message]) -> OrderCheck:
    """Check that no two adjacent messages share a role"""
    if not messages:
        return OrderCheck(valid=False, error="Message array is empty")

    for i in range(1, len(messages)):
        role = messages[i].get("role")
        if role == messages[i - 1].get("role"):
            return OrderCheck(
                valid=False,
                index=i,
                error=f"Consecutive {role} messages found at index {i}",
            )
    return OrderCheck(valid=True)


def strip_reasoning_field(messages: list[Message]) -> list[Message]:
    """Remove transient reasoning text from assistant messages.

    Returns copies; the caller's messages are left untouched.
    """
    stripped = []
    removed = 0
    for msg in messages:
        if msg.get("role") == "assistant" and REASONING_FIELD in msg:
            msg = {k: v for k, v in msg.items() if k != REASONING_FIELD}
            removed += 1
        stripped.append(msg)

    if removed:
        logger.debug(f"Stripped reasoning field from {removed} assistant messages")
    return stripped


def prepare_messages(messages: list[Any]) -> list[Message]:
    """Clean then collapse; running it on its own output changes nothing"""
    return collapse_consecutive_same_role(validate_and_clean(messages))


def clean_reasoner_messages(messages: list[Message]) -> list[Message]:
    """Filter for reasoning backends that reject echoed reasoning text.

    The reasoning field is stripped first since it plays no part in the
    collapse decision.
    """
    without_reasoning = strip_reasoning_field(messages)
    cleaned = collapse_consecutive_same_role(without_reasoning)
    if len(cleaned) != len(without_reasoning):
        logger.info(
            f"Reasoner message cleanup: removed {len(without_reasoning) - len(cleaned)} duplicate messages"
        )
    return cleaned


def to_wire(messages: list[Message]) -> list[dict]:
    """Project messages onto the {role, content} request shape"""
    return [{"role": m.get("role"), "content": m.get("content", "")} for m in messages]
