"""Items placed on the event queue."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .errors import TransportError


@dataclass(frozen=True, slots=True)
class DataEvent:
    """A new update from a DISTINCT subscription, or one leg of a trade fan-out."""

    kind: str
    payload: Any

    def to_dict(self) -> dict:
        return {"type": "data", "kind": self.kind, "data": self.payload.to_dict()}


@dataclass(frozen=True, slots=True)
class DataWithSnapshotEvent:
    """A new update from a MERGE subscription plus the full merged state of its topic."""

    kind: str
    payload: Any
    snapshot: Any

    def to_dict(self) -> dict:
        return {
            "type": "snapshot",
            "kind": self.kind,
            "data": self.payload.to_dict(),
            "snapshot": self.snapshot.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TransportErrorEvent:
    """A delivery or connection failure, delivered inline with data."""

    error: Exception

    @property
    def fatal(self) -> bool:
        return isinstance(self.error, TransportError) and self.error.fatal

    def to_dict(self) -> dict:
        return {
            "type": "error",
            "error": type(self.error).__name__,
            "message": str(self.error),
            "fatal": self.fatal,
        }


StreamEvent = Union[DataEvent, DataWithSnapshotEvent, TransportErrorEvent]
