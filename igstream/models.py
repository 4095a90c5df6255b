"""Typed update records and the default model instantiation.

Each update kind is an immutable dataclass. Fields marked ``derived`` are
never read from the wire: the normalizer fills them in from the topic key.
Every other field carries a coercer in its metadata that turns the raw wire
string into its declared type.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Mapping, TypeVar

from .errors import CoercionError
from .keys import Scale

T = TypeVar("T", bound="UpdateRecord")

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def _float(value: str) -> float:
    return float(value)


def _int(value: str) -> int:
    return int(value)


def _str(value: str) -> str:
    return str(value)


def _bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError("not a boolean")


def _epoch_ms(value: Any) -> datetime:
    """Unix milliseconds, as sent in UTM fields."""
    return datetime.fromtimestamp(int(float(value)) / 1000.0, tz=timezone.utc)


def _timestamp(value: Any) -> datetime:
    """ISO-8601 text, or Unix milliseconds when the value is numeric."""
    text = str(value).strip()
    if text.lstrip("-").replace(".", "", 1).isdigit():
        return _epoch_ms(text)
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _choice(*allowed: str) -> Callable[[Any], str]:
    def coerce(value: Any) -> str:
        text = str(value).strip().lower()
        if text not in allowed:
            raise ValueError(f"expected one of {', '.join(allowed)}")
        return text

    return coerce


def _wire(coercer: Callable[[Any], Any]) -> Any:
    return field(default=None, metadata={"coerce": coercer})


def _derived() -> Any:
    return field(default=None, metadata={"derived": True})


_DIRECTION = _choice("buy", "sell")
_DEAL_STATUS = _choice("accepted", "rejected")
_UPDATE_STATUS = _choice("open", "updated", "deleted")


class UpdateRecord:
    """Mixin for the serialisation shared by all update kinds."""

    kind: ClassVar[str] = ""

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        result: dict[str, Any] = {"kind": self.kind}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Scale):
                value = value.value
            result[f.name] = value
        return result


@dataclass(frozen=True, slots=True)
class AccountUpdate(UpdateRecord):
    """Balance update for one account."""

    kind: ClassVar[str] = "account"

    account_id: str | None = _derived()
    available_cash: float | None = _wire(_float)
    available_to_deal: float | None = _wire(_float)
    deposit: float | None = _wire(_float)
    equity: float | None = _wire(_float)
    funds: float | None = _wire(_float)
    margin: float | None = _wire(_float)
    pnl: float | None = _wire(_float)


@dataclass(frozen=True, slots=True)
class MarketUpdate(UpdateRecord):
    """Price update for one market."""

    kind: ClassVar[str] = "market"

    epic: str | None = _derived()
    bid: float | None = _wire(_float)
    high: float | None = _wire(_float)
    low: float | None = _wire(_float)
    mid_open: float | None = _wire(_float)
    odds: float | None = _wire(_float)
    offer: float | None = _wire(_float)
    strike_price: float | None = _wire(_float)


@dataclass(frozen=True, slots=True)
class DealConfirmation(UpdateRecord):
    """Outcome of a deal request, pushed on the trade topic."""

    kind: ClassVar[str] = "deal_confirmation"

    account_id: str | None = _derived()
    date: datetime | None = _wire(_timestamp)
    deal_id: str | None = _wire(_str)
    deal_reference: str | None = _wire(_str)
    deal_status: str | None = _wire(_DEAL_STATUS)
    direction: str | None = _wire(_DIRECTION)
    epic: str | None = _wire(_str)
    expiry: str | None = _wire(_str)
    guaranteed_stop: bool | None = _wire(_bool)
    level: float | None = _wire(_float)
    limit_level: float | None = _wire(_float)
    profit: float | None = _wire(_float)
    profit_currency: str | None = _wire(_str)
    reason: str | None = _wire(_str)
    size: float | None = _wire(_float)
    status: str | None = _wire(_choice("open", "amended", "deleted", "partially_closed", "closed"))
    stop_level: float | None = _wire(_float)
    trailing_stop: bool | None = _wire(_bool)


@dataclass(frozen=True, slots=True)
class PositionUpdate(UpdateRecord):
    """Open position change, pushed on the trade topic."""

    kind: ClassVar[str] = "position"

    account_id: str | None = _derived()
    channel: str | None = _wire(_str)
    currency: str | None = _wire(_str)
    deal_id: str | None = _wire(_str)
    deal_id_origin: str | None = _wire(_str)
    deal_reference: str | None = _wire(_str)
    deal_status: str | None = _wire(_DEAL_STATUS)
    direction: str | None = _wire(_DIRECTION)
    epic: str | None = _wire(_str)
    expiry: str | None = _wire(_str)
    guaranteed_stop: bool | None = _wire(_bool)
    level: float | None = _wire(_float)
    limit_level: float | None = _wire(_float)
    size: float | None = _wire(_float)
    status: str | None = _wire(_UPDATE_STATUS)
    stop_level: float | None = _wire(_float)
    timestamp: datetime | None = _wire(_timestamp)


@dataclass(frozen=True, slots=True)
class WorkingOrderUpdate(UpdateRecord):
    """Working order change, pushed on the trade topic."""

    kind: ClassVar[str] = "working_order"

    account_id: str | None = _derived()
    channel: str | None = _wire(_str)
    currency: str | None = _wire(_str)
    deal_id: str | None = _wire(_str)
    deal_reference: str | None = _wire(_str)
    deal_status: str | None = _wire(_DEAL_STATUS)
    direction: str | None = _wire(_DIRECTION)
    epic: str | None = _wire(_str)
    expiry: str | None = _wire(_str)
    good_till_date: str | None = _wire(_str)
    guaranteed_stop: bool | None = _wire(_bool)
    level: float | None = _wire(_float)
    limit_distance: float | None = _wire(_float)
    order_type: str | None = _wire(_choice("limit", "stop"))
    size: float | None = _wire(_float)
    status: str | None = _wire(_UPDATE_STATUS)
    stop_distance: float | None = _wire(_float)
    time_in_force: str | None = _wire(_str)
    timestamp: datetime | None = _wire(_timestamp)


@dataclass(frozen=True, slots=True)
class ChartTickUpdate(UpdateRecord):
    """A single chart tick for one market."""

    kind: ClassVar[str] = "chart_tick"

    epic: str | None = _derived()
    bid: float | None = _wire(_float)
    day_high: float | None = _wire(_float)
    day_low: float | None = _wire(_float)
    day_net_chg_mid: float | None = _wire(_float)
    day_open_mid: float | None = _wire(_float)
    day_perc_chg_mid: float | None = _wire(_float)
    ltp: float | None = _wire(_float)
    ltv: float | None = _wire(_float)
    ofr: float | None = _wire(_float)
    ttv: float | None = _wire(_float)
    utm: datetime | None = _wire(_epoch_ms)


@dataclass(frozen=True, slots=True)
class ConsolidatedChartUpdate(UpdateRecord):
    """An OHLC bar (possibly still forming) for one market and scale."""

    kind: ClassVar[str] = "consolidated_chart"

    epic: str | None = _derived()
    scale: Scale | None = _derived()
    bid_close: float | None = _wire(_float)
    bid_high: float | None = _wire(_float)
    bid_low: float | None = _wire(_float)
    bid_open: float | None = _wire(_float)
    cons_end: bool | None = _wire(_bool)
    cons_tick_count: int | None = _wire(_int)
    day_high: float | None = _wire(_float)
    day_low: float | None = _wire(_float)
    day_net_chg_mid: float | None = _wire(_float)
    day_open_mid: float | None = _wire(_float)
    day_perc_chg_mid: float | None = _wire(_float)
    ltp_close: float | None = _wire(_float)
    ltp_high: float | None = _wire(_float)
    ltp_low: float | None = _wire(_float)
    ltp_open: float | None = _wire(_float)
    ltv: float | None = _wire(_float)
    ofr_close: float | None = _wire(_float)
    ofr_high: float | None = _wire(_float)
    ofr_low: float | None = _wire(_float)
    ofr_open: float | None = _wire(_float)
    ttv: float | None = _wire(_float)
    utm: datetime | None = _wire(_epoch_ms)


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def attribute_name(key: str) -> str:
    """Map a wire key to an attribute name: AVAILABLE_CASH and availableCash -> available_cash."""
    if key.isupper():
        return key.lower()
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def instantiate(kind: type[T], raw: Mapping[str, Any] | None) -> T:
    """Build a ``kind`` record from a raw field map.

    Unknown keys are ignored; missing keys and empty strings become None.
    Raises CoercionError when a value does not fit its field.
    """
    values: dict[str, Any] = {}
    wire_fields = {f.name: f for f in fields(kind) if not f.metadata.get("derived")}  # type: ignore[arg-type]

    for key, value in (raw or {}).items():
        name = attribute_name(str(key))
        f = wire_fields.get(name)
        if f is None or value is None or (isinstance(value, str) and not value.strip()):
            continue
        try:
            values[name] = f.metadata["coerce"](value)
        except (TypeError, ValueError, OverflowError) as e:
            raise CoercionError(kind.__name__, name, value, str(e)) from e

    return kind(**values)


def parse_json_payload(kind: type, text: str) -> dict:
    """Decode the JSON object carried by a trade topic field."""
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise CoercionError(kind.__name__, "<payload>", text, "invalid JSON") from e
    if not isinstance(payload, dict):
        raise CoercionError(kind.__name__, "<payload>", text, "expected a JSON object")
    return payload


def instantiate_from_json(kind: type[T], text: str) -> T:
    """Build a ``kind`` record from a JSON object, as carried by the trade topic fields."""
    return instantiate(kind, parse_json_payload(kind, text))
