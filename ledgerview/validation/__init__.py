"""Input validation package."""

from ledgerview.validation.amount import (
    INVALID,
    AmountParser,
    ParsedAmount,
    is_valid_amount,
    parse_amount,
)

__all__ = [
    "INVALID",
    "AmountParser",
    "ParsedAmount",
    "is_valid_amount",
    "parse_amount",
]
