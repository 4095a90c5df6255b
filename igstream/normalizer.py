"""Turn raw pushes into typed events.

One handler per update family. Each handler is a pure function of the raw
push: it decodes the topic key, coerces the field maps through the model
factory, attaches the identifiers recovered from the key and returns the
events to enqueue, in order. Handlers run on the transport's delivery
thread and must not block.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Mapping

from .events import DataEvent, DataWithSnapshotEvent, StreamEvent
from .keys import TopicKind, decode_key
from .models import (
    AccountUpdate,
    ChartTickUpdate,
    ConsolidatedChartUpdate,
    DealConfirmation,
    MarketUpdate,
    PositionUpdate,
    WorkingOrderUpdate,
    parse_json_payload,
)
from .subscriptions import UpdateFamily

ModelFactory = Callable[[type, Mapping[str, Any]], Any]
Handler = Callable[[str, Mapping[str, Any], Mapping[str, Any], ModelFactory], list[StreamEvent]]

# Trade pushes fan out in this order, one event per non-empty field
TRADE_LEGS: tuple[tuple[str, type], ...] = (
    ("CONFIRMS", DealConfirmation),
    ("OPU", PositionUpdate),
    ("WOU", WorkingOrderUpdate),
)


def _with_snapshot(kind: type, merged: Mapping[str, Any], delta: Mapping[str, Any],
                   factory: ModelFactory, **identifiers: Any) -> DataWithSnapshotEvent:
    snapshot = replace(factory(kind, merged), **identifiers)
    payload = replace(factory(kind, delta), **identifiers)
    return DataWithSnapshotEvent(kind=kind.kind, payload=payload, snapshot=snapshot)


def on_account_data(item_name: str, merged: Mapping[str, Any], delta: Mapping[str, Any],
                    factory: ModelFactory) -> list[StreamEvent]:
    (account_id,) = decode_key(TopicKind.ACCOUNT, item_name)
    return [_with_snapshot(AccountUpdate, merged, delta, factory, account_id=account_id)]


def on_market_data(item_name: str, merged: Mapping[str, Any], delta: Mapping[str, Any],
                   factory: ModelFactory) -> list[StreamEvent]:
    (epic,) = decode_key(TopicKind.MARKET, item_name)
    return [_with_snapshot(MarketUpdate, merged, delta, factory, epic=epic)]


def on_trade_data(item_name: str, merged: Mapping[str, Any], delta: Mapping[str, Any],
                  factory: ModelFactory) -> list[StreamEvent]:
    (account_id,) = decode_key(TopicKind.TRADE, item_name)

    events: list[StreamEvent] = []
    for field_name, kind in TRADE_LEGS:
        text = delta.get(field_name)
        if not text:
            continue
        record = replace(factory(kind, parse_json_payload(kind, text)), account_id=account_id)
        events.append(DataEvent(kind=kind.kind, payload=record))
    return events


def on_chart_tick_data(item_name: str, merged: Mapping[str, Any], delta: Mapping[str, Any],
                       factory: ModelFactory) -> list[StreamEvent]:
    (epic,) = decode_key(TopicKind.CHART_TICK, item_name)
    record = replace(factory(ChartTickUpdate, delta), epic=epic)
    return [DataEvent(kind=ChartTickUpdate.kind, payload=record)]


def on_consolidated_chart_data(item_name: str, merged: Mapping[str, Any], delta: Mapping[str, Any],
                               factory: ModelFactory) -> list[StreamEvent]:
    epic, scale = decode_key(TopicKind.CHART_CANDLE, item_name)
    return [_with_snapshot(ConsolidatedChartUpdate, merged, delta, factory, epic=epic, scale=scale)]


HANDLERS: dict[UpdateFamily, Handler] = {
    UpdateFamily.ACCOUNTS: on_account_data,
    UpdateFamily.MARKETS: on_market_data,
    UpdateFamily.TRADES: on_trade_data,
    UpdateFamily.CHART_TICKS: on_chart_tick_data,
    UpdateFamily.CONSOLIDATED_CHART: on_consolidated_chart_data,
}


def normalize(family: UpdateFamily, item_name: str, merged: Mapping[str, Any],
              delta: Mapping[str, Any], factory: ModelFactory) -> list[StreamEvent]:
    """Dispatch a raw push to the handler for its family."""
    return HANDLERS[family](item_name, merged, delta, factory)
