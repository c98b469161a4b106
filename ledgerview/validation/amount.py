"""
Amount Parsing

Turns free-form user text into a signed Decimal.

Accepted, after trimming surrounding whitespace:
    [+|-] digits [ (.|,) digits ]

A comma is treated as the decimal separator and normalized to a point.
Anything else (two separators, letters, an empty string, a lone sign,
a separator with no digits after it) is INVALID.

IMPORTANT: Parsing never raises. Callers get either a finite Decimal
or the INVALID marker, so the same function can drive live validation
of the submit button and produce the value that is sent.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Union

_AMOUNT_PATTERN = re.compile(r"[+-]?[0-9]+(?:\.[0-9]+)?")


class _InvalidAmount:
    """Marker for text that is not an amount. Falsy, single instance."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "INVALID"


INVALID = _InvalidAmount()

ParsedAmount = Union[Decimal, _InvalidAmount]


def parse_amount(text: object) -> ParsedAmount:
    """Parse `text` into a Decimal, or return INVALID."""
    if not isinstance(text, str):
        return INVALID

    candidate = text.strip()
    if candidate.count(",") + candidate.count(".") > 1:
        return INVALID
    candidate = candidate.replace(",", ".")

    if not _AMOUNT_PATTERN.fullmatch(candidate):
        return INVALID

    try:
        value = Decimal(candidate)
    except InvalidOperation:
        return INVALID
    return value if value.is_finite() else INVALID


def is_valid_amount(text: object) -> bool:
    return parse_amount(text) is not INVALID


class AmountParser:
    """Object form of parse_amount, for injection into controllers."""

    INVALID = INVALID

    @staticmethod
    def parse(text: object) -> ParsedAmount:
        return parse_amount(text)

    @staticmethod
    def is_valid(text: object) -> bool:
        return is_valid_amount(text)
