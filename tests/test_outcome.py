"""Tests for outcome classification of concluded markets."""

import pytest

from resolution.outcome import (
    NO, YES, LabelPolicy, MarketSnapshot, PriceThresholdPolicy, Resolution,
    classify, get_outcome_policy, map_outcome_label, parse_outcome_prices,
)


class TestParseOutcomePrices:
    def test_json_encoded_strings(self):
        assert parse_outcome_prices('["0.995", "0.005"]') == (0.995, 0.005)

    def test_plain_list(self):
        assert parse_outcome_prices([1, 0]) == (1.0, 0.0)

    def test_missing(self):
        assert parse_outcome_prices(None) == (None, None)

    def test_garbage(self):
        assert parse_outcome_prices("not json") == (None, None)
        assert parse_outcome_prices('{"yes": 1}') == (None, None)
        assert parse_outcome_prices('["abc", "0.2"]') == (None, 0.2)

    def test_single_price(self):
        assert parse_outcome_prices('["0.4"]') == (0.4, None)


class TestMarketSnapshot:
    def test_from_gamma(self):
        snap = MarketSnapshot.from_gamma({
            "id": "123",
            "closed": True,
            "outcomePrices": '["0.999", "0.001"]',
        })
        assert snap.closed is True
        assert snap.yes_price == 0.999
        assert snap.no_price == 0.001
        assert snap.outcome_label is None

    def test_reads_outcome_label(self):
        snap = MarketSnapshot.from_gamma({"closed": True, "outcome_label": "Yes"})
        assert snap.outcome_label == "Yes"
        assert LabelPolicy().classify(snap) == Resolution.of(YES)

    def test_outcome_label_preferred_over_outcome(self):
        snap = MarketSnapshot.from_gamma({"closed": True, "outcome_label": "No",
                                          "outcome": "Yes"})
        assert snap.outcome_label == "No"

    def test_falls_back_to_outcome(self):
        snap = MarketSnapshot.from_gamma({"closed": True, "outcome": "Yes"})
        assert LabelPolicy().classify(snap) == Resolution.of(YES)

    def test_defaults_to_open(self):
        snap = MarketSnapshot.from_gamma({})
        assert snap.closed is False
        assert snap.yes_price is None


class TestPriceThresholdPolicy:
    @pytest.mark.parametrize("yes,no,expected", [
        (0.995, 0.005, YES),
        (0.99, 0.01, YES),
        (0.005, 0.995, NO),
        (0.01, 0.5, NO),
        (None, 0.999, NO),
    ])
    def test_extreme_prices_resolve(self, yes, no, expected):
        snap = MarketSnapshot(closed=True, yes_price=yes, no_price=no)
        assert classify(snap) == Resolution.of(expected)

    def test_closed_but_mid_prices_unresolved(self):
        snap = MarketSnapshot(closed=True, yes_price=0.6, no_price=0.4)
        assert classify(snap) == Resolution.unresolved()

    def test_open_market_never_resolves(self):
        snap = MarketSnapshot(closed=False, yes_price=0.999, no_price=0.001)
        assert classify(snap).resolved is False

    def test_closed_without_prices_unresolved(self):
        snap = MarketSnapshot(closed=True)
        assert classify(snap).resolved is False
        assert classify(snap).outcome is None

    def test_label_is_ignored(self):
        snap = MarketSnapshot(closed=True, outcome_label="Yes", yes_price=0.5, no_price=0.5)
        assert classify(snap, PriceThresholdPolicy()).resolved is False

    def test_custom_threshold(self):
        policy = PriceThresholdPolicy(threshold=0.95, floor=0.05)
        snap = MarketSnapshot(closed=True, yes_price=0.96, no_price=0.04)
        assert policy.classify(snap).outcome == YES


class TestLabelPolicy:
    def test_yes_label(self):
        snap = MarketSnapshot(closed=True, outcome_label="Yes")
        assert LabelPolicy().classify(snap) == Resolution.of(YES)

    def test_other_label_maps_to_no(self):
        snap = MarketSnapshot(closed=True, outcome_label="No")
        assert LabelPolicy().classify(snap) == Resolution.of(NO)

    def test_blank_label_unresolved(self):
        snap = MarketSnapshot(closed=True, outcome_label="  ")
        assert LabelPolicy().classify(snap).resolved is False

    def test_open_market_unresolved(self):
        snap = MarketSnapshot(closed=False, outcome_label="Yes")
        assert LabelPolicy().classify(snap).resolved is False


class TestPolicyLookup:
    def test_by_name(self):
        assert isinstance(get_outcome_policy("price"), PriceThresholdPolicy)
        assert isinstance(get_outcome_policy("label"), LabelPolicy)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown outcome policy"):
            get_outcome_policy("coin_flip")


def test_map_outcome_label():
    assert map_outcome_label(" yes ") == YES
    assert map_outcome_label("TRUE") == YES
    assert map_outcome_label("1") == YES
    assert map_outcome_label("Nope") == NO
