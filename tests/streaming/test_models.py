"""Tests for update records and model instantiation."""

from datetime import datetime, timezone

import pytest

from igstream.errors import CoercionError
from igstream.keys import Scale
from igstream.models import (
    AccountUpdate,
    ChartTickUpdate,
    ConsolidatedChartUpdate,
    DealConfirmation,
    MarketUpdate,
    PositionUpdate,
    WorkingOrderUpdate,
    attribute_name,
    instantiate,
    instantiate_from_json,
)


class TestAttributeName:
    """Tests for wire key to attribute name mapping."""

    def test_upper_snake(self):
        assert attribute_name("AVAILABLE_CASH") == "available_cash"

    def test_camel_case(self):
        assert attribute_name("dealIdOrigin") == "deal_id_origin"

    def test_already_snake(self):
        assert attribute_name("deal_id") == "deal_id"


class TestInstantiate:
    """Unit tests for instantiate."""

    def test_account_update(self):
        """Test that numeric strings are parsed to floats."""
        update = instantiate(AccountUpdate, {"AVAILABLE_CASH": "1000.5", "PNL": "-12.25"})
        assert update.available_cash == 1000.5
        assert update.pnl == -12.25
        assert update.equity is None
        assert update.account_id is None

    def test_empty_and_missing_values_are_none(self):
        update = instantiate(MarketUpdate, {"BID": "", "OFFER": None})
        assert update.bid is None
        assert update.offer is None

    def test_unknown_keys_ignored(self):
        update = instantiate(MarketUpdate, {"BID": "1.1", "MARKET_STATE": "TRADEABLE"})
        assert update.bid == 1.1

    def test_derived_fields_not_read_from_wire(self):
        """Test that identifiers only come from the topic key."""
        update = instantiate(MarketUpdate, {"EPIC": "CS.D.EURUSD.CFD.IP"})
        assert update.epic is None

    def test_invalid_number(self):
        with pytest.raises(CoercionError) as exc_info:
            instantiate(AccountUpdate, {"EQUITY": "lots"})
        assert exc_info.value.field == "equity"
        assert exc_info.value.kind == "AccountUpdate"

    def test_utm_is_epoch_milliseconds(self):
        update = instantiate(ChartTickUpdate, {"UTM": "1457355014000", "LTV": "3"})
        assert update.utm == datetime(2016, 3, 7, 12, 50, 14, tzinfo=timezone.utc)
        assert update.ltv == 3.0

    def test_consolidated_flags(self):
        update = instantiate(ConsolidatedChartUpdate, {"CONS_END": "1", "CONS_TICK_COUNT": "42"})
        assert update.cons_end is True
        assert update.cons_tick_count == 42

    def test_invalid_boolean(self):
        with pytest.raises(CoercionError):
            instantiate(ConsolidatedChartUpdate, {"CONS_END": "maybe"})

    def test_enumerated_values_lowercased(self):
        update = instantiate(PositionUpdate, {"direction": "BUY", "status": "OPEN", "dealStatus": "ACCEPTED"})
        assert update.direction == "buy"
        assert update.status == "open"
        assert update.deal_status == "accepted"

    def test_enumerated_value_rejected(self):
        with pytest.raises(CoercionError):
            instantiate(WorkingOrderUpdate, {"orderType": "MARKET"})

    def test_iso_timestamp(self):
        update = instantiate(PositionUpdate, {"timestamp": "2016-03-07T12:50:14.123"})
        assert update.timestamp == datetime(2016, 3, 7, 12, 50, 14, 123000, tzinfo=timezone.utc)


class TestInstantiateFromJson:
    """Tests for JSON payload instantiation."""

    def test_deal_confirmation(self):
        text = (
            '{"dealId": "DIAAAA1", "dealReference": "REF1", "dealStatus": "ACCEPTED", '
            '"direction": "SELL", "epic": "CS.D.EURUSD.CFD.IP", "level": 1.085, "size": 2, '
            '"status": "OPEN", "reason": "SUCCESS", "guaranteedStop": false}'
        )
        confirmation = instantiate_from_json(DealConfirmation, text)
        assert confirmation.deal_id == "DIAAAA1"
        assert confirmation.direction == "sell"
        assert confirmation.level == 1.085
        assert confirmation.size == 2.0
        assert confirmation.guaranteed_stop is False

    def test_invalid_json(self):
        with pytest.raises(CoercionError):
            instantiate_from_json(DealConfirmation, "{not json")

    def test_json_must_be_object(self):
        with pytest.raises(CoercionError):
            instantiate_from_json(PositionUpdate, "[1, 2]")


class TestRecords:
    """Tests for record behaviour."""

    def test_records_are_immutable(self):
        update = MarketUpdate(epic="CS.D.EURUSD.CFD.IP", bid=1.1)
        with pytest.raises(AttributeError):
            update.bid = 1.2

    def test_to_dict(self):
        update = ConsolidatedChartUpdate(
            epic="XYZ.123",
            scale=Scale.ONE_MINUTE,
            utm=datetime(2016, 3, 7, 12, 50, tzinfo=timezone.utc),
            bid_open=1.5,
        )
        result = update.to_dict()
        assert result["kind"] == "consolidated_chart"
        assert result["epic"] == "XYZ.123"
        assert result["scale"] == "one_minute"
        assert result["utm"] == "2016-03-07T12:50:00+00:00"
        assert result["bid_open"] == 1.5
