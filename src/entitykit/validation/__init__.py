"""Rule-based validation of entity payloads."""

from entitykit.validation.messages import DEFAULT_MESSAGES
from entitykit.validation.validator import (
    RuleValidator,
    check_rule,
    make_error_message,
    make_message_ids,
    validate_input,
)

__all__ = [
    "DEFAULT_MESSAGES",
    "RuleValidator",
    "check_rule",
    "make_error_message",
    "make_message_ids",
    "validate_input",
]
