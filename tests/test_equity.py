"""Tests for vectorized showdown and fold evaluation."""

import numpy as np
import pytest
from treys import Evaluator

from postflop.game.cards import card_from_str, cards_from_str
from postflop.game.equity import (
    PrivateHands, fold_values, hand_strengths, showdown_balance, showdown_equity, unblocked_reach,
)
from postflop.game.ranges import parse_range


@pytest.fixture
def evaluator():
    return Evaluator()


@pytest.fixture
def board_river():
    return cards_from_str("Ks7d2c9h3s")


def brute_force_balance(hands, opp_hands, strengths, opp_strengths, opp_reach):
    """Pairwise reference for showdown_balance."""
    weaker = np.zeros(len(hands))
    stronger = np.zeros(len(hands))
    for i, hand in enumerate(hands.hands):
        for j, opp in enumerate(opp_hands.hands):
            if set(hand) & set(opp):
                continue
            if strengths[i] > opp_strengths[j]:
                weaker[i] += opp_reach[j]
            elif strengths[i] < opp_strengths[j]:
                stronger[i] += opp_reach[j]
    return weaker, stronger


class TestPrivateHands:
    def test_board_cards_removed(self, board_river):
        hands = PrivateHands(parse_range("KK"), board_river)
        assert len(hands) == 3
        assert all(card_from_str("Ks") not in hand for hand in hands.hands)

    def test_index_in(self, board_river):
        aa = PrivateHands(parse_range("AA"), board_river)
        both = PrivateHands(parse_range("AA,QQ"), board_river)
        index = aa.index_in(both)
        assert all(both.hands[j] == aa.hands[i] for i, j in enumerate(index))
        assert np.sum(both.index_in(aa) == -1) == 6

    def test_holding(self, board_river):
        hands = PrivateHands(parse_range("AA"), board_river)
        assert hands.holding(card_from_str("As")).sum() == 3


class TestHandStrengths:
    def test_set_beats_pair(self, evaluator, board_river):
        hands = PrivateHands(parse_range("KhKd,AsAh"), board_river)
        strengths = hand_strengths(hands, board_river, evaluator)
        kings = hands.hands.index(tuple(sorted(cards_from_str("KhKd"))))
        aces = hands.hands.index(tuple(sorted(cards_from_str("AsAh"))))
        assert strengths[kings] > strengths[aces] > 0

    def test_requires_five_cards(self, evaluator):
        hands = PrivateHands(parse_range("AA"), cards_from_str("Ks7d2c"))
        with pytest.raises(ValueError):
            hand_strengths(hands, cards_from_str("Ks7d2c"), evaluator)


class TestShowdown:
    def test_balance_matches_pairwise(self, evaluator, board_river):
        hands = PrivateHands(parse_range("AA,KK,99,AK,72o"), board_river)
        opp = PrivateHands(parse_range("QQ+,AQs,T9s,33"), board_river)
        rng = np.random.default_rng(7)
        opp_reach = rng.random(len(opp))
        s = hand_strengths(hands, board_river, evaluator)
        o = hand_strengths(opp, board_river, evaluator)

        weaker, stronger = showdown_balance(hands, opp, s, o, opp_reach)
        expected_weaker, expected_stronger = brute_force_balance(hands, opp, s, o, opp_reach)
        assert np.allclose(weaker, expected_weaker)
        assert np.allclose(stronger, expected_stronger)

    def test_equity_aces_vs_queens(self, evaluator, board_river):
        aces = PrivateHands(parse_range("AA"), board_river)
        queens = PrivateHands(parse_range("QQ"), board_river)
        share, valid = showdown_equity(
            aces, queens,
            hand_strengths(aces, board_river, evaluator),
            hand_strengths(queens, board_river, evaluator),
            queens.weights, aces.index_in(queens),
        )
        assert np.allclose(share / valid, 1.0)

    def test_chop(self, evaluator):
        board = cards_from_str("AsKsQsJsTs")
        hands = PrivateHands(parse_range("22"), board)
        opp = PrivateHands(parse_range("33"), board)
        share, valid = showdown_equity(
            hands, opp,
            hand_strengths(hands, board, evaluator),
            hand_strengths(opp, board, evaluator),
            opp.weights, hands.index_in(opp),
        )
        assert np.allclose(share / valid, 0.5)


class TestCardRemoval:
    def test_unblocked_reach(self, board_river):
        hands = PrivateHands(parse_range("AsAh"), board_river)
        opp = PrivateHands(parse_range("AA"), board_river)
        reach = unblocked_reach(hands, opp, opp.weights, hands.index_in(opp))
        # Only AdAc avoids both of our aces
        assert reach[0] == pytest.approx(1.0)

    def test_identical_hand_counted_once(self, board_river):
        hands = PrivateHands(parse_range("AA"), board_river)
        reach = unblocked_reach(hands, hands, hands.weights, hands.index_in(hands))
        assert np.allclose(reach, 1.0)

    def test_fold_values(self, board_river):
        hands = PrivateHands(parse_range("AsAh"), board_river)
        opp = PrivateHands(parse_range("AA,QQ"), board_river)
        values = fold_values(hands, opp, opp.weights, hands.index_in(opp), -15.0)
        assert values[0] == pytest.approx(-15.0 * 7)
