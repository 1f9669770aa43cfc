"""Showdown and fold evaluation over vectors of private hands.

Every function here works on a player's whole set of private hands at once:
values are numpy vectors indexed like ``PrivateHands.hands``. Card removal
(an opponent hand sharing a card with ours) is handled with per-card reach
sums instead of pairwise matrices.
"""

from typing import Sequence

import numpy as np
from treys import Evaluator

from .cards import NUM_CARDS, pair_index, to_treys
from .ranges import Range

# treys ranks run 1 (royal flush) .. 7462 (seven high)
_WORST_RANK = 7462


class PrivateHands:
    """One player's private hands after removing the dealt board."""

    def __init__(self, hand_range: Range, board: Sequence[int]):
        dead = set(board)
        self.hands: list[tuple[int, int]] = hand_range.hands(dead)
        ids = [pair_index(c1, c2) for c1, c2 in self.hands]
        self.pair_ids = np.array(ids, dtype=np.int64)
        self.weights = hand_range.weights[self.pair_ids].astype(np.float64)
        self.c1 = np.array([h[0] for h in self.hands], dtype=np.int64)
        self.c2 = np.array([h[1] for h in self.hands], dtype=np.int64)

        # card_mask[c, i] is 1.0 if hand i holds card c
        self.card_mask = np.zeros((NUM_CARDS, len(self.hands)), dtype=np.float64)
        idx = np.arange(len(self.hands))
        self.card_mask[self.c1, idx] = 1.0
        self.card_mask[self.c2, idx] = 1.0

    def __len__(self) -> int:
        return len(self.hands)

    def index_in(self, other: "PrivateHands") -> np.ndarray:
        """For each of our hands, the index of the identical hand in ``other`` or -1."""
        lookup = {pid: i for i, pid in enumerate(other.pair_ids.tolist())}
        return np.array([lookup.get(pid, -1) for pid in self.pair_ids.tolist()], dtype=np.int64)

    def holding(self, card: int) -> np.ndarray:
        """Boolean mask of hands that contain ``card``."""
        return self.card_mask[card] > 0


def hand_strengths(hands: PrivateHands, board: Sequence[int], evaluator: Evaluator) -> np.ndarray:
    """
    Strength of each hand on a complete 5-card board.

    Higher is stronger; hands that overlap the board get 0.
    """
    if len(board) != 5:
        raise ValueError("Board must have exactly 5 cards")

    board_set = set(board)
    board_treys = [to_treys(c) for c in board]
    strengths = np.zeros(len(hands), dtype=np.int32)
    for i, (c1, c2) in enumerate(hands.hands):
        if c1 in board_set or c2 in board_set:
            continue
        rank = evaluator.evaluate([to_treys(c1), to_treys(c2)], board_treys)
        strengths[i] = _WORST_RANK + 1 - rank
    return strengths


def unblocked_reach(
    hands: PrivateHands,
    opp_hands: PrivateHands,
    opp_reach: np.ndarray,
    same_index: np.ndarray,
) -> np.ndarray:
    """Opponent reach compatible with each of our hands (no shared card)."""
    card_sums = opp_hands.card_mask @ opp_reach
    same = np.where(same_index >= 0, opp_reach[np.maximum(same_index, 0)], 0.0)
    return opp_reach.sum() - card_sums[hands.c1] - card_sums[hands.c2] + same


def fold_values(
    hands: PrivateHands,
    opp_hands: PrivateHands,
    opp_reach: np.ndarray,
    same_index: np.ndarray,
    payoff: float,
) -> np.ndarray:
    """Counterfactual values at a fold terminal; ``payoff`` is signed for us."""
    return payoff * unblocked_reach(hands, opp_hands, opp_reach, same_index)


def showdown_balance(
    hands: PrivateHands,
    opp_hands: PrivateHands,
    strengths: np.ndarray,
    opp_strengths: np.ndarray,
    opp_reach: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Opponent reach that our hands beat and lose to at showdown.

    Returns:
        Tuple of (weaker_reach, stronger_reach) vectors
    """
    order = np.argsort(opp_strengths, kind="stable")
    sorted_strengths = opp_strengths[order]
    sorted_reach = opp_reach[order]

    cum = np.concatenate(([0.0], np.cumsum(sorted_reach)))
    card_cum = np.zeros((NUM_CARDS, len(order) + 1))
    card_cum[:, 1:] = np.cumsum(opp_hands.card_mask[:, order] * sorted_reach, axis=1)

    lo = np.searchsorted(sorted_strengths, strengths, side="left")
    hi = np.searchsorted(sorted_strengths, strengths, side="right")

    # An identical hand has equal strength, so it is never in either bucket
    weaker = cum[lo] - card_cum[hands.c1, lo] - card_cum[hands.c2, lo]
    total = cum[-1]
    c1_total = card_cum[hands.c1, -1]
    c2_total = card_cum[hands.c2, -1]
    stronger = (
        (total - cum[hi])
        - (c1_total - card_cum[hands.c1, hi])
        - (c2_total - card_cum[hands.c2, hi])
    )
    return weaker, stronger


def showdown_values(
    hands: PrivateHands,
    opp_hands: PrivateHands,
    strengths: np.ndarray,
    opp_strengths: np.ndarray,
    opp_reach: np.ndarray,
    payoff: float,
) -> np.ndarray:
    """Counterfactual values at a showdown terminal."""
    weaker, stronger = showdown_balance(hands, opp_hands, strengths, opp_strengths, opp_reach)
    values = payoff * (weaker - stronger)
    values[strengths == 0] = 0.0
    return values


def showdown_equity(
    hands: PrivateHands,
    opp_hands: PrivateHands,
    strengths: np.ndarray,
    opp_strengths: np.ndarray,
    opp_reach: np.ndarray,
    same_index: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Pot share of each hand on a complete board, before normalization.

    Returns:
        Tuple of (share, unblocked_reach); equity is share / unblocked_reach
    """
    weaker, stronger = showdown_balance(hands, opp_hands, strengths, opp_strengths, opp_reach)
    valid = unblocked_reach(hands, opp_hands, opp_reach, same_index)
    ties = valid - weaker - stronger
    share = weaker + 0.5 * ties
    dead = strengths == 0
    share[dead] = 0.0
    valid[dead] = 0.0
    return share, valid
