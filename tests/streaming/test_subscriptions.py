"""Tests for subscription descriptor builders."""

from types import SimpleNamespace

import pytest

from igstream.keys import Scale, TopicKind
from igstream.subscriptions import (
    ACCOUNT_FIELDS,
    CHART_TICK_FIELDS,
    CONSOLIDATED_CHART_FIELDS,
    MARKET_FIELDS,
    TRADE_FIELDS,
    SubscriptionMode,
    UpdateFamily,
    build_accounts_subscription,
    build_chart_ticks_subscription,
    build_consolidated_chart_subscription,
    build_markets_subscription,
    build_trades_subscription,
)


class TestBuilders:
    """Unit tests for the five build operations."""

    def test_accounts_subscription(self):
        descriptor = build_accounts_subscription(["ABC123", "XYZ987"])
        assert descriptor.items == ("ACCOUNT:ABC123", "ACCOUNT:XYZ987")
        assert descriptor.fields == ACCOUNT_FIELDS
        assert descriptor.mode is SubscriptionMode.MERGE
        assert descriptor.family is UpdateFamily.ACCOUNTS
        assert descriptor.topic_kind is TopicKind.ACCOUNT

    def test_accounts_default_to_platform_accounts(self, platform):
        """Test that no account list means all accounts of the active client."""
        descriptor = build_accounts_subscription(None, platform)
        assert descriptor.items == ("ACCOUNT:ABC123", "ACCOUNT:XYZ987")

    def test_account_objects_accepted(self):
        accounts = [SimpleNamespace(account_id="ABC123")]
        assert build_trades_subscription(accounts).items == ("TRADE:ABC123",)

    def test_empty_account_list_is_honoured(self, platform):
        assert build_accounts_subscription([], platform).items == ()

    def test_no_accounts_and_no_platform(self):
        with pytest.raises(ValueError):
            build_accounts_subscription()

    def test_markets_subscription(self):
        descriptor = build_markets_subscription(["CS.D.EURUSD.CFD.IP", "IX.D.FTSE.DAILY.IP"])
        assert descriptor.items == ("MARKET:CS.D.EURUSD.CFD.IP", "MARKET:IX.D.FTSE.DAILY.IP")
        assert descriptor.fields == MARKET_FIELDS
        assert descriptor.mode is SubscriptionMode.MERGE

    def test_markets_subscription_rejects_bad_epic(self):
        with pytest.raises(ValueError):
            build_markets_subscription(["bad"])

    def test_trades_subscription(self, platform):
        descriptor = build_trades_subscription(platform=platform)
        assert descriptor.items == ("TRADE:ABC123", "TRADE:XYZ987")
        assert descriptor.fields == TRADE_FIELDS
        assert descriptor.mode is SubscriptionMode.DISTINCT

    def test_chart_ticks_subscription(self):
        descriptor = build_chart_ticks_subscription(["CS.D.EURUSD.CFD.IP"])
        assert descriptor.items == ("CHART:CS.D.EURUSD.CFD.IP:TICK",)
        assert descriptor.fields == CHART_TICK_FIELDS
        assert descriptor.mode is SubscriptionMode.DISTINCT

    def test_consolidated_chart_subscription(self):
        descriptor = build_consolidated_chart_subscription("XYZ.123", Scale.FIVE_MINUTES)
        assert descriptor.items == ("CHART:XYZ.123:5MINUTE",)
        assert descriptor.fields == CONSOLIDATED_CHART_FIELDS
        assert descriptor.mode is SubscriptionMode.MERGE
        assert descriptor.family is UpdateFamily.CONSOLIDATED_CHART

    def test_consolidated_chart_scale_by_name(self):
        descriptor = build_consolidated_chart_subscription("XYZ.123", "one_hour")
        assert descriptor.items == ("CHART:XYZ.123:HOUR",)


class TestSubscriptionDescriptor:
    """Tests for descriptor identity and immutability."""

    def test_descriptors_are_immutable(self):
        descriptor = build_markets_subscription(["CS.D.EURUSD.CFD.IP"])
        with pytest.raises(AttributeError):
            descriptor.items = ()

    def test_equal_contents_are_distinct_handles(self):
        first = build_markets_subscription(["CS.D.EURUSD.CFD.IP"])
        second = build_markets_subscription(["CS.D.EURUSD.CFD.IP"])
        assert first != second
        assert len({first, second}) == 2
