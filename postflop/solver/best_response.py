"""
Best response, equity and expected-value computation.

All three walk the tree with a fixed-seed chance plan so that repeated
evaluations of the same game sample the same runouts, and so that both
players' best responses are measured on identical boards.
"""

import logging
from typing import TYPE_CHECKING

import numpy as np

from postflop.game.equity import showdown_equity, unblocked_reach
from .traversal import ChancePlan, deal, terminal_values

if TYPE_CHECKING:
    from .game import GameNode, PostflopGame

logger = logging.getLogger(__name__)

# Offset keeps evaluation samples independent of the training stream
_EVALUATION_SEED = 0x5EED


def evaluation_plan(game: "PostflopGame") -> ChancePlan:
    rng = np.random.default_rng(game.config.seed + _EVALUATION_SEED)
    return ChancePlan(game, rng, game.config.evaluation_samples)


class _Evaluation:
    """
    Tree walk that values one player's hands against the opponent's average strategy.

    With ``best_response`` the player picks the highest-valued action per
    hand; otherwise the player follows their own average strategy.
    """

    def __init__(self, game: "PostflopGame", player: int, plan: ChancePlan, best_response: bool):
        self.game = game
        self.player = player
        self.plan = plan
        self.best_response = best_response

    def run(self, node: "GameNode", board: tuple[int, ...], opp_reach: np.ndarray) -> np.ndarray:
        if node.is_terminal:
            return terminal_values(self.game, node, self.player, board, opp_reach)

        num_hands = len(self.game.hands[self.player])
        if node.is_chance:
            scale = self.plan.reach_scale(board)
            values = np.zeros(num_hands)
            for card in self.plan.cards(board):
                child = self.game.chance_child(node, card)
                child_reach, blocked = deal(self.game, self.player, card, opp_reach, scale)
                child_values = self.run(child, board + (card,), child_reach)
                child_values[blocked] = 0.0
                values += child_values
            return values

        strategy = node.strategy.get_average_strategy()
        if node.player != self.player:
            values = np.zeros(num_hands)
            for i, child in enumerate(node.children):
                values += self.run(child, board, opp_reach * strategy[i])
            return values

        action_values = np.stack([self.run(child, board, opp_reach) for child in node.children])
        if self.best_response:
            return action_values.max(axis=0)
        return (strategy * action_values).sum(axis=0)


def best_response_value(game: "PostflopGame", player: int, plan: ChancePlan) -> float:
    """
    Expected value of a best response for ``player``, per combination.

    Args:
        game: Allocated game
        player: Responding player
        plan: Chance plan shared with the other player's evaluation

    Returns:
        Best-response EV relative to the half-pot baseline
    """
    opponent = player ^ 1
    walk = _Evaluation(game, player, plan, best_response=True)
    values = walk.run(game.root, game.initial_board, game.hands[opponent].weights.copy())
    return float(game.hands[player].weights @ values) / game.num_combinations


def compute_exploitability(game: "PostflopGame") -> float:
    """
    Average of both players' best-response gains, clamped at zero.

    In a zero-sum game the two best-response values sum to zero exactly at
    equilibrium; sampling noise can push the estimate slightly below.
    """
    plan = evaluation_plan(game)
    ev0 = best_response_value(game, 0, plan)
    ev1 = best_response_value(game, 1, plan)
    logger.debug("best response values: %.4f / %.4f", ev0, ev1)
    return max(0.0, (ev0 + ev1) / 2.0)


def compute_expected_values(game: "PostflopGame", player: int) -> np.ndarray:
    """
    Per-hand expected chips won from the pot when both players follow the average strategy.

    Hands with no compatible opponent hand get 0.
    """
    opponent = player ^ 1
    walk = _Evaluation(game, player, evaluation_plan(game), best_response=False)
    opp_weights = game.hands[opponent].weights
    values = walk.run(game.root, game.initial_board, opp_weights.copy())
    reach = unblocked_reach(game.hands[player], game.hands[opponent], opp_weights, game.same_index[player])

    half_pot = game.tree_config.starting_pot / 2.0
    ev = np.zeros(len(values))
    valid = reach > 0
    ev[valid] = values[valid] / reach[valid] + half_pot
    return ev


def compute_equity(game: "PostflopGame", player: int) -> np.ndarray:
    """
    Per-hand showdown equity against the opponent's range.

    Boards with undealt cards are completed with the evaluation plan's
    sampled runouts.
    """
    opponent = player ^ 1
    hands, opp_hands = game.hands[player], game.hands[opponent]
    plan = evaluation_plan(game)
    share = np.zeros(len(hands))
    total = np.zeros(len(hands))

    stack = [(game.initial_board, np.ones(len(hands)), opp_hands.weights.copy())]
    while stack:
        board, live, opp_reach = stack.pop()
        if len(board) == 5:
            strengths = game.strengths(board)
            s, v = showdown_equity(
                hands, opp_hands, strengths[player], strengths[opponent], opp_reach, game.same_index[player]
            )
            share += s * live
            total += v * live
            continue
        for card in plan.cards(board):
            child_reach = opp_reach.copy()
            child_reach[opp_hands.holding(card)] = 0.0
            child_live = np.where(hands.holding(card), 0.0, live)
            stack.append((board + (card,), child_live, child_reach))

    equity = np.zeros(len(hands))
    valid = total > 0
    equity[valid] = share[valid] / total[valid]
    return equity
