"""Tests for topic key encoding and decoding."""

import pytest

from igstream.errors import MalformedTopicKey
from igstream.keys import Scale, TopicKind, decode_key, encode_key, validate_epic


class TestEncodeKey:
    """Unit tests for encode_key."""

    def test_account_key(self):
        assert encode_key(TopicKind.ACCOUNT, "ABC123") == "ACCOUNT:ABC123"

    def test_market_key(self):
        assert encode_key(TopicKind.MARKET, "CS.D.EURUSD.CFD.IP") == "MARKET:CS.D.EURUSD.CFD.IP"

    def test_trade_key(self):
        assert encode_key(TopicKind.TRADE, "ABC123") == "TRADE:ABC123"

    def test_chart_tick_key(self):
        assert encode_key(TopicKind.CHART_TICK, "CS.D.EURUSD.CFD.IP") == "CHART:CS.D.EURUSD.CFD.IP:TICK"

    def test_chart_candle_key_for_each_scale(self):
        """Test that every scale maps to its transport token."""
        expected = {
            Scale.ONE_SECOND: "CHART:XYZ.123:SECOND",
            Scale.ONE_MINUTE: "CHART:XYZ.123:1MINUTE",
            Scale.FIVE_MINUTES: "CHART:XYZ.123:5MINUTE",
            Scale.ONE_HOUR: "CHART:XYZ.123:HOUR",
        }
        for scale, key in expected.items():
            assert encode_key(TopicKind.CHART_CANDLE, "XYZ.123", scale) == key

    def test_chart_candle_accepts_scale_name(self):
        assert encode_key(TopicKind.CHART_CANDLE, "XYZ.123", "five_minutes") == "CHART:XYZ.123:5MINUTE"

    def test_chart_candle_requires_scale(self):
        with pytest.raises(ValueError):
            encode_key(TopicKind.CHART_CANDLE, "XYZ.123")

    def test_unknown_scale_rejected(self):
        with pytest.raises(ValueError):
            encode_key(TopicKind.CHART_CANDLE, "XYZ.123", "one_day")

    def test_empty_identifier_rejected(self):
        with pytest.raises(ValueError):
            encode_key(TopicKind.ACCOUNT, "")

    def test_colon_in_identifier_rejected(self):
        with pytest.raises(ValueError):
            encode_key(TopicKind.MARKET, "A:B")


class TestDecodeKey:
    """Unit tests for decode_key."""

    def test_decode_consolidated_chart_key(self):
        """Test that the chart key decodes to EPIC and scale and re-encodes identically."""
        epic, scale = decode_key(TopicKind.CHART_CANDLE, "CHART:XYZ.123:5MINUTE")
        assert epic == "XYZ.123"
        assert scale is Scale.FIVE_MINUTES
        assert encode_key(TopicKind.CHART_CANDLE, epic, scale) == "CHART:XYZ.123:5MINUTE"

    def test_decode_account_key(self):
        assert decode_key(TopicKind.ACCOUNT, "ACCOUNT:ABC123") == ("ABC123",)

    def test_decode_chart_tick_key(self):
        assert decode_key(TopicKind.CHART_TICK, "CHART:CS.D.EURUSD.CFD.IP:TICK") == ("CS.D.EURUSD.CFD.IP",)

    def test_wrong_prefix(self):
        with pytest.raises(MalformedTopicKey):
            decode_key(TopicKind.ACCOUNT, "TRADE:ABC123")

    def test_tick_key_is_not_a_candle_key(self):
        with pytest.raises(MalformedTopicKey):
            decode_key(TopicKind.CHART_CANDLE, "CHART:XYZ.123:TICK")

    def test_unknown_scale_token(self):
        with pytest.raises(MalformedTopicKey):
            decode_key(TopicKind.CHART_CANDLE, "CHART:XYZ.123:DAY")

    def test_missing_identifier(self):
        with pytest.raises(MalformedTopicKey):
            decode_key(TopicKind.MARKET, "MARKET:")

    def test_malformed_key_is_a_value_error(self):
        with pytest.raises(ValueError):
            decode_key(TopicKind.TRADE, "garbage")


class TestScale:
    """Tests for the Scale token mapping."""

    def test_token_round_trip(self):
        for scale in Scale:
            assert Scale.from_token(scale.token) is scale

    def test_unknown_token(self):
        with pytest.raises(KeyError):
            Scale.from_token("WEEK")


class TestValidateEpic:
    """Tests for EPIC validation."""

    def test_valid_epic(self):
        assert validate_epic("CS.D.EURUSD.CFD.IP") == "CS.D.EURUSD.CFD.IP"

    def test_too_short(self):
        with pytest.raises(ValueError):
            validate_epic("ABC")

    def test_invalid_characters(self):
        with pytest.raises(ValueError):
            validate_epic("CS.D.EUR/USD")
