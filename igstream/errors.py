"""Error types raised or delivered by the streaming pipeline."""

from __future__ import annotations

from typing import Any


class StreamingError(Exception):
    """Base class for all streaming errors."""


class StreamingConnectionError(StreamingError):
    """Opening the push transport failed. Raised synchronously from connect()."""


class TransportError(StreamingError):
    """A delivery or connection failure reported by the transport.

    Never raised at the caller. It reaches the consumer wrapped in a
    TransportErrorEvent, interleaved with data. ``fatal`` means the
    connection is gone and the caller has to connect() again.
    """

    def __init__(self, message: str, code: int | None = None, fatal: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.fatal = fatal

    def __repr__(self) -> str:
        return f"TransportError({str(self)!r}, code={self.code!r}, fatal={self.fatal!r})"


class SubscriptionStartError(StreamingError):
    """The transport refused to start one subscription."""

    def __init__(self, message: str, descriptor: Any = None) -> None:
        super().__init__(message)
        self.descriptor = descriptor


class MalformedTopicKey(StreamingError, ValueError):
    """A topic key does not match the grammar for its kind."""


class CoercionError(StreamingError, ValueError):
    """A raw field value violates the declared type or allowed values of its model."""

    def __init__(self, kind: str, field: str, value: Any, reason: str = "") -> None:
        detail = f"{kind}.{field}: cannot coerce {value!r}"
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(detail)
        self.kind = kind
        self.field = field
        self.value = value
