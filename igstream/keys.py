"""Topic keys: the colon-delimited strings that address push topics.

    ACCOUNT:<account id>
    MARKET:<epic>
    TRADE:<account id>
    CHART:<epic>:TICK
    CHART:<epic>:<SECOND|1MINUTE|5MINUTE|HOUR>

Keys are only ever produced by encode_key(), so a key that fails to decode
means a programming error, not bad input from the venue.
"""

from __future__ import annotations

import re
from enum import Enum

from .errors import MalformedTopicKey

EPIC_PATTERN = re.compile(r"^[A-Za-z0-9._]{6,30}$")


class Scale(str, Enum):
    """Bar width of a consolidated chart topic."""

    ONE_SECOND = "one_second"
    ONE_MINUTE = "one_minute"
    FIVE_MINUTES = "five_minutes"
    ONE_HOUR = "one_hour"

    @property
    def token(self) -> str:
        """The transport token used inside topic keys."""
        return _SCALE_TOKENS[self]

    @classmethod
    def from_token(cls, token: str) -> Scale:
        return _TOKEN_SCALES[token]


_SCALE_TOKENS: dict[Scale, str] = {
    Scale.ONE_SECOND: "SECOND",
    Scale.ONE_MINUTE: "1MINUTE",
    Scale.FIVE_MINUTES: "5MINUTE",
    Scale.ONE_HOUR: "HOUR",
}
_TOKEN_SCALES: dict[str, Scale] = {token: scale for scale, token in _SCALE_TOKENS.items()}


class TopicKind(str, Enum):
    ACCOUNT = "account"
    MARKET = "market"
    TRADE = "trade"
    CHART_TICK = "chart_tick"
    CHART_CANDLE = "chart_candle"


_SCALE_ALTERNATION = "|".join(re.escape(token) for token in _SCALE_TOKENS.values())

_PATTERNS: dict[TopicKind, re.Pattern[str]] = {
    TopicKind.ACCOUNT: re.compile(r"^ACCOUNT:([^:]+)$"),
    TopicKind.MARKET: re.compile(r"^MARKET:([^:]+)$"),
    TopicKind.TRADE: re.compile(r"^TRADE:([^:]+)$"),
    TopicKind.CHART_TICK: re.compile(r"^CHART:([^:]+):TICK$"),
    TopicKind.CHART_CANDLE: re.compile(rf"^CHART:([^:]+):({_SCALE_ALTERNATION})$"),
}


def validate_epic(epic: str) -> str:
    """Return the EPIC unchanged, or raise ValueError if it is not a valid instrument code."""
    if not isinstance(epic, str) or not EPIC_PATTERN.match(epic):
        raise ValueError(f"Invalid EPIC: {epic!r}")
    return epic


def _check_identifier(value: str) -> str:
    if not value or ":" in value:
        raise ValueError(f"Topic identifier must be non-empty and colon-free: {value!r}")
    return value


def encode_key(kind: TopicKind, identifier: str, scale: Scale | str | None = None) -> str:
    """Render a topic key for the given kind and identifiers."""
    identifier = _check_identifier(identifier)

    if kind is TopicKind.ACCOUNT:
        return f"ACCOUNT:{identifier}"
    if kind is TopicKind.MARKET:
        return f"MARKET:{identifier}"
    if kind is TopicKind.TRADE:
        return f"TRADE:{identifier}"
    if kind is TopicKind.CHART_TICK:
        return f"CHART:{identifier}:TICK"
    if kind is TopicKind.CHART_CANDLE:
        if scale is None:
            raise ValueError("A consolidated chart key needs a scale")
        return f"CHART:{identifier}:{Scale(scale).token}"
    raise ValueError(f"Unknown topic kind: {kind!r}")


def decode_key(kind: TopicKind, key: str) -> tuple:
    """Recover the identifiers encoded in a topic key.

    Returns ``(identifier,)`` for every kind except CHART_CANDLE, which
    returns ``(epic, Scale)``. Raises MalformedTopicKey on any mismatch.
    """
    pattern = _PATTERNS.get(kind)
    match = pattern.match(key) if pattern is not None and isinstance(key, str) else None
    if match is None:
        raise MalformedTopicKey(f"Topic key {key!r} is not a valid {getattr(kind, 'value', kind)} key")

    if kind is TopicKind.CHART_CANDLE:
        epic, token = match.groups()
        return epic, Scale.from_token(token)
    return (match.group(1),)
