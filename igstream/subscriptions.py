"""Declarative subscription descriptors and the builders for each update family."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from .interface import DealingPlatform
from .keys import Scale, TopicKind, encode_key, validate_epic


class SubscriptionMode(str, Enum):
    """MERGE: the transport keeps and replays the full field-set. DISTINCT: every push stands alone."""

    MERGE = "MERGE"
    DISTINCT = "DISTINCT"


class UpdateFamily(str, Enum):
    ACCOUNTS = "accounts"
    MARKETS = "markets"
    TRADES = "trades"
    CHART_TICKS = "chart_ticks"
    CONSOLIDATED_CHART = "consolidated_chart"


ACCOUNT_FIELDS = ("AVAILABLE_CASH", "AVAILABLE_TO_DEAL", "DEPOSIT", "EQUITY", "FUNDS", "MARGIN", "PNL")

MARKET_FIELDS = ("BID", "HIGH", "LOW", "MID_OPEN", "ODDS", "OFFER", "STRIKE_PRICE")

TRADE_FIELDS = ("CONFIRMS", "OPU", "WOU")

CHART_TICK_FIELDS = (
    "BID", "DAY_HIGH", "DAY_LOW", "DAY_NET_CHG_MID", "DAY_OPEN_MID", "DAY_PERC_CHG_MID",
    "LTP", "LTV", "OFR", "TTV", "UTM",
)

CONSOLIDATED_CHART_FIELDS = (
    "BID_CLOSE", "BID_HIGH", "BID_LOW", "BID_OPEN", "CONS_END", "CONS_TICK_COUNT",
    "DAY_HIGH", "DAY_LOW", "DAY_NET_CHG_MID", "DAY_OPEN_MID", "DAY_PERC_CHG_MID",
    "LTP_CLOSE", "LTP_HIGH", "LTP_LOW", "LTP_OPEN", "LTV",
    "OFR_CLOSE", "OFR_HIGH", "OFR_LOW", "OFR_OPEN", "TTV", "UTM",
)

FAMILY_FIELDS: dict[UpdateFamily, tuple[str, ...]] = {
    UpdateFamily.ACCOUNTS: ACCOUNT_FIELDS,
    UpdateFamily.MARKETS: MARKET_FIELDS,
    UpdateFamily.TRADES: TRADE_FIELDS,
    UpdateFamily.CHART_TICKS: CHART_TICK_FIELDS,
    UpdateFamily.CONSOLIDATED_CHART: CONSOLIDATED_CHART_FIELDS,
}

FAMILY_TOPICS: dict[UpdateFamily, TopicKind] = {
    UpdateFamily.ACCOUNTS: TopicKind.ACCOUNT,
    UpdateFamily.MARKETS: TopicKind.MARKET,
    UpdateFamily.TRADES: TopicKind.TRADE,
    UpdateFamily.CHART_TICKS: TopicKind.CHART_TICK,
    UpdateFamily.CONSOLIDATED_CHART: TopicKind.CHART_CANDLE,
}


@dataclass(frozen=True, eq=False)
class SubscriptionDescriptor:
    """Immutable description of one subscription: topics, fields, mode and family.

    Compared by identity, so the descriptor itself serves as the handle
    passed to StreamingSession.stop_subscription().
    """

    items: tuple[str, ...]
    fields: tuple[str, ...]
    mode: SubscriptionMode
    family: UpdateFamily

    @property
    def topic_kind(self) -> TopicKind:
        return FAMILY_TOPICS[self.family]


def account_ids(accounts: Iterable[Any]) -> list[str]:
    """Accept account id strings or objects with an ``account_id`` attribute."""
    return [a if isinstance(a, str) else a.account_id for a in accounts]


def _resolve_accounts(accounts: Iterable[Any] | None, platform: DealingPlatform | None) -> list[str]:
    if accounts is None:
        if platform is None:
            raise ValueError("No accounts given and no platform to ask for the active client's accounts")
        accounts = platform.current_accounts()
    return account_ids(accounts)


def build_accounts_subscription(
    accounts: Iterable[Any] | None = None,
    platform: DealingPlatform | None = None,
) -> SubscriptionDescriptor:
    """Balance updates for the given accounts, or all of the active client's accounts when None."""
    items = tuple(encode_key(TopicKind.ACCOUNT, a) for a in _resolve_accounts(accounts, platform))
    return SubscriptionDescriptor(items, ACCOUNT_FIELDS, SubscriptionMode.MERGE, UpdateFamily.ACCOUNTS)


def build_markets_subscription(epics: Iterable[str]) -> SubscriptionDescriptor:
    """Price updates for the given markets."""
    items = tuple(encode_key(TopicKind.MARKET, validate_epic(e)) for e in epics)
    return SubscriptionDescriptor(items, MARKET_FIELDS, SubscriptionMode.MERGE, UpdateFamily.MARKETS)


def build_trades_subscription(
    accounts: Iterable[Any] | None = None,
    platform: DealingPlatform | None = None,
) -> SubscriptionDescriptor:
    """Deal confirmations, position updates and working order updates for the given accounts.

    A single push on this subscription can produce up to three events.
    """
    items = tuple(encode_key(TopicKind.TRADE, a) for a in _resolve_accounts(accounts, platform))
    return SubscriptionDescriptor(items, TRADE_FIELDS, SubscriptionMode.DISTINCT, UpdateFamily.TRADES)


def build_chart_ticks_subscription(epics: Iterable[str]) -> SubscriptionDescriptor:
    """Chart tick data for the given markets."""
    items = tuple(encode_key(TopicKind.CHART_TICK, validate_epic(e)) for e in epics)
    return SubscriptionDescriptor(items, CHART_TICK_FIELDS, SubscriptionMode.DISTINCT, UpdateFamily.CHART_TICKS)


def build_consolidated_chart_subscription(epic: str, scale: Scale | str) -> SubscriptionDescriptor:
    """Consolidated OHLC bars for one market at one scale."""
    items = (encode_key(TopicKind.CHART_CANDLE, validate_epic(epic), Scale(scale)),)
    return SubscriptionDescriptor(
        items, CONSOLIDATED_CHART_FIELDS, SubscriptionMode.MERGE, UpdateFamily.CONSOLIDATED_CHART
    )
