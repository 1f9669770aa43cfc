"""Pieces shared by every tree traversal: chance sampling and terminal values."""

from typing import TYPE_CHECKING

import numpy as np

from postflop.game.equity import fold_values, showdown_values

if TYPE_CHECKING:
    from .game import GameNode, PostflopGame


class ChancePlan:
    """
    Cards sampled for each chance event during one traversal.

    All chance nodes that share a board reuse the same sample (public chance
    sampling). A plan belongs to a single worker; workers never share one.
    """

    def __init__(self, game: "PostflopGame", rng: np.random.Generator, samples: int):
        self.game = game
        self.rng = rng
        self.samples = samples
        self._cards: dict[tuple[int, ...], list[int]] = {}

    def cards(self, board: tuple[int, ...]) -> list[int]:
        key = tuple(sorted(board))
        cards = self._cards.get(key)
        if cards is None:
            available = self.game.available_cards(board)
            k = min(self.samples, len(available))
            cards = sorted(self.rng.choice(available, size=k, replace=False).tolist())
            self._cards[key] = cards
        return cards

    def reach_scale(self, board: tuple[int, ...]) -> float:
        """
        Weight applied to opponent reach below a sampled chance node.

        Each (hand, opponent hand) pair sees ``n - 4`` possible cards out of
        ``n`` undealt ones; sampling ``k`` of them scales by ``n / k``.
        """
        n = len(self.game.available_cards(board))
        k = len(self.cards(board))
        return n / (k * (n - 4))


def terminal_values(
    game: "PostflopGame",
    node: "GameNode",
    player: int,
    board: tuple[int, ...],
    opp_reach: np.ndarray,
) -> np.ndarray:
    """Counterfactual values of ``player``'s hands at a terminal node."""
    opponent = player ^ 1
    tree_node = node.tree_node
    payoff = tree_node.payoff_amount(game.tree_config.starting_pot / 2.0)
    hands, opp_hands = game.hands[player], game.hands[opponent]

    if tree_node.folded_player is not None:
        sign = -1.0 if tree_node.folded_player == player else 1.0
        return fold_values(hands, opp_hands, opp_reach, game.same_index[player], sign * payoff)

    strengths = game.strengths(board)
    return showdown_values(hands, opp_hands, strengths[player], strengths[opponent], opp_reach, payoff)


def deal(
    game: "PostflopGame",
    player: int,
    card: int,
    opp_reach: np.ndarray,
    scale: float,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Opponent reach below a dealt card, plus the mask of our blocked hands.

    Returns:
        Tuple of (scaled opponent reach, mask of player's hands holding card)
    """
    opponent = player ^ 1
    child_reach = opp_reach * scale
    child_reach[game.hands[opponent].holding(card)] = 0.0
    return child_reach, game.hands[player].holding(card)
