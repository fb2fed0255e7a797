from .message import (
    Message,
    OrderCheck,
    clean_reasoner_messages,
    collapse_consecutive_same_role,
    prepare_messages,
    strip_reasoning_field,
    validate_and_clean,
    validate_order,
)

__all__ = [
    "Message",
    "OrderCheck",
    "clean_reasoner_messages",
    "collapse_consecutive_same_role",
    "prepare_messages",
    "strip_reasoning_field",
    "validate_and_clean",
    "validate_order",
]
