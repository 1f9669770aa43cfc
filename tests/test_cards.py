"""Tests for card and range representation."""

import numpy as np
import pytest

from postflop.errors import ConfigurationError
from postflop.game.cards import (
    HOLE_PAIRS, NOT_DEALT, NUM_PAIRS,
    card_from_str, card_to_str, flop_from_str, hole_to_str, holes_to_strings,
    pair_index, to_treys,
)
from postflop.game.ranges import Range, parse_range


class TestCard:
    def test_from_string(self):
        assert card_from_str("2c") == 0
        assert card_from_str("As") == 51

    def test_from_string_ten(self):
        assert card_from_str("Th") == 4 * 8 + 2

    def test_from_string_lowercase(self):
        assert card_from_str("kd") == card_from_str("Kd")

    def test_str(self):
        assert card_to_str(51) == "As"
        assert card_to_str(NOT_DEALT) == ""

    def test_from_string_invalid_rank(self):
        with pytest.raises(ConfigurationError):
            card_from_str("Xs")

    def test_from_string_invalid_suit(self):
        with pytest.raises(ConfigurationError):
            card_from_str("Ax")

    def test_round_trip_all_cards(self):
        for card in range(52):
            assert card_from_str(card_to_str(card)) == card

    def test_to_treys(self):
        assert isinstance(to_treys(card_from_str("As")), int)


class TestFlop:
    def test_parse(self):
        assert flop_from_str("Td9d6h") == tuple(sorted(
            card_from_str(c) for c in ("Td", "9d", "6h")
        ))

    def test_spaces_allowed(self):
        assert flop_from_str("Td 9d 6h") == flop_from_str("Td9d6h")

    def test_wrong_length(self):
        with pytest.raises(ConfigurationError):
            flop_from_str("Td9d")

    def test_duplicate(self):
        with pytest.raises(ConfigurationError):
            flop_from_str("TdTd6h")


class TestHolePairs:
    def test_count(self):
        assert len(HOLE_PAIRS) == NUM_PAIRS == 1326

    def test_pair_index_symmetric(self):
        assert pair_index(3, 40) == pair_index(40, 3)
        assert HOLE_PAIRS[pair_index(3, 40)] == (3, 40)

    def test_high_card_first(self):
        hole = (card_from_str("Kd"), card_from_str("As"))
        assert hole_to_str(hole) == "AsKd"
        assert holes_to_strings([hole]) == ["AsKd"]


class TestRange:
    def test_pair(self):
        assert parse_range("AA").num_combos() == 6

    def test_suited_and_offsuit(self):
        assert parse_range("AKs").num_combos() == 4
        assert parse_range("AKo").num_combos() == 12
        assert parse_range("AK").num_combos() == 16

    def test_plus(self):
        assert parse_range("TT+").num_combos() == 5 * 6
        assert parse_range("ATs+").num_combos() == 4 * 4

    def test_dash(self):
        assert parse_range("22-55").num_combos() == 4 * 6
        assert parse_range("A2s-A5s").num_combos() == 4 * 4

    def test_specific_combo(self):
        r = parse_range("AsKh")
        assert r.num_combos() == 1
        assert r.weights[pair_index(card_from_str("As"), card_from_str("Kh"))] == 1.0

    def test_weights(self):
        r = parse_range("QQ:0.5,AA")
        qq = pair_index(card_from_str("Qc"), card_from_str("Qd"))
        aa = pair_index(card_from_str("Ac"), card_from_str("Ad"))
        assert r.weights[qq] == pytest.approx(0.5)
        assert r.weights[aa] == 1.0

    @pytest.mark.parametrize("text", ["random", "random hands", "any"])
    def test_full_range_keywords(self, text):
        assert np.all(parse_range(text).weights == 1.0)

    def test_hands_remove_dead_cards(self):
        r = Range.full()
        dead = {card_from_str(c) for c in ("Td", "9d", "6h")}
        hands = r.hands(dead)
        assert len(hands) == 49 * 48 // 2
        assert all(c not in dead for hand in hands for c in hand)

    @pytest.mark.parametrize("text", ["", "ZZ", "AA:2", "AAs", "AK-QJ", "AA,,KK", "22-A5s"])
    def test_malformed(self, text):
        with pytest.raises(ConfigurationError):
            parse_range(text)
