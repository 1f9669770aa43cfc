"""
Counterfactual Regret Minimization (CFR) solver.

CFR is an iterative algorithm for finding Nash equilibrium strategies
in extensive-form games. This implementation uses:
- Discounted CFR (DCFR) regret and average-strategy discounting
- Vectorized traversal: every private hand of a player at once
- Alternating updates, one traversal per player per iteration
- Public chance sampling for turn and river cards
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from typing import Callable, Optional

import numpy as np

from postflop.errors import EngineError
from .best_response import compute_exploitability
from .cell import PartitionedArray
from .game import GameNode, PostflopGame
from .traversal import ChancePlan, deal, terminal_values

logger = logging.getLogger(__name__)


class _Traversal:
    """One regret-updating pass over the tree for ``player``."""

    def __init__(
        self,
        game: PostflopGame,
        player: int,
        iteration: int,
        plan: ChancePlan,
        pool: Optional[ThreadPoolExecutor] = None,
    ):
        self.game = game
        self.player = player
        self.iteration = iteration
        self.plan = plan
        self.pool = pool
        self.config = game.config

    def run(
        self,
        node: GameNode,
        board: tuple[int, ...],
        opp_reach: np.ndarray,
        reach: np.ndarray,
    ) -> np.ndarray:
        """
        Recursive CFR traversal.

        Args:
            node: Current node
            board: Cards dealt so far
            opp_reach: Opponent reach per opponent hand (chance scaled)
            reach: Updating player's own reach per hand

        Returns:
            Counterfactual value for each of the player's hands
        """
        if node.is_terminal:
            return terminal_values(self.game, node, self.player, board, opp_reach)

        if node.is_chance:
            return self._chance(node, board, opp_reach, reach)

        stats = node.strategy
        strategy = stats.get_strategy()

        if node.player != self.player:
            values = np.zeros(len(reach))
            for i, child in enumerate(node.children):
                values += self.run(child, board, opp_reach * strategy[i], reach)
            return values

        action_values = np.empty((len(node.children), len(reach)))
        for i, child in enumerate(node.children):
            action_values[i] = self.run(child, board, opp_reach, reach * strategy[i])

        node_value = (strategy * action_values).sum(axis=0)
        regrets = action_values - node_value[np.newaxis, :]
        stats.update_regrets(regrets, self.iteration, self.config.alpha, self.config.beta)
        stats.update_strategy_sum(strategy, reach, self.iteration, self.config.gamma)
        return node_value

    def _chance(
        self,
        node: GameNode,
        board: tuple[int, ...],
        opp_reach: np.ndarray,
        reach: np.ndarray,
    ) -> np.ndarray:
        cards = self.plan.cards(board)
        scale = self.plan.reach_scale(board)
        children = [self.game.chance_child(node, card) for card in cards]

        # Workers need disjoint subtrees, so only per-card chance nodes fan out
        if self.pool is not None and node.per_card and len(cards) > 1:
            return self._parallel_chance(children, cards, board, opp_reach, reach, scale)

        values = np.zeros(len(reach))
        for card, child in zip(cards, children):
            child_reach, blocked = deal(self.game, self.player, card, opp_reach, scale)
            own_reach = np.where(blocked, 0.0, reach)
            child_values = self.run(child, board + (card,), child_reach, own_reach)
            child_values[blocked] = 0.0
            values += child_values
        return values

    def _parallel_chance(
        self,
        children: list[GameNode],
        cards: list[int],
        board: tuple[int, ...],
        opp_reach: np.ndarray,
        reach: np.ndarray,
        scale: float,
    ) -> np.ndarray:
        """
        Evaluate each sampled card on its own worker.

        Each worker owns one row of ``results`` (partitioned, no lock) and
        writes only to the strategy storage of its own per-card subtree.
        Children were materialized above, before any worker starts.
        """
        results = PartitionedArray(len(cards), len(reach))
        seeds = self.plan.rng.integers(0, 2 ** 63 - 1, size=len(cards))

        def work(part: int) -> None:
            card = cards[part]
            child_reach, blocked = deal(self.game, self.player, card, opp_reach, scale)
            own_reach = np.where(blocked, 0.0, reach)
            plan = ChancePlan(self.game, np.random.default_rng(int(seeds[part])), self.plan.samples)
            worker = _Traversal(self.game, self.player, self.iteration, plan)
            child_values = worker.run(children[part], board + (card,), child_reach, own_reach)
            child_values[blocked] = 0.0
            # PartitionedArray: row ``part`` belongs to this worker only
            with results.exclusive(part) as row:
                row[:] = child_values

        list(self.pool.map(work, range(len(cards))))
        return results.sum()


def run_iteration(
    game: PostflopGame,
    rng: np.random.Generator,
    pool: Optional[ThreadPoolExecutor] = None,
) -> None:
    """Run one DCFR iteration: a traversal for each player."""
    iteration = game.num_iterations + 1
    for player in (0, 1):
        opponent = player ^ 1
        plan = ChancePlan(game, rng, game.config.chance_samples)
        traversal = _Traversal(game, player, iteration, plan, pool)
        traversal.run(
            game.root,
            game.initial_board,
            game.hands[opponent].weights.copy(),
            game.hands[player].weights.copy(),
        )
    game.num_iterations = iteration


def solve(
    game: PostflopGame,
    max_iterations: int,
    target_exploitability: float,
    print_progress: bool = False,
    callback: Optional[Callable[[int, float], None]] = None,
) -> float:
    """
    Run DCFR until the exploitability target or the iteration cap is reached.

    Args:
        game: Allocated, not yet finalized game
        max_iterations: Iteration cap (positive)
        target_exploitability: Stop once exploitability is at or below this
        print_progress: Log every exploitability check at INFO level
        callback: Optional callback(iteration, exploitability)

    Returns:
        Lowest exploitability observed (never negative)
    """
    if isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations < 1:
        raise ValueError(f"max_iterations must be a positive integer, got {max_iterations!r}")
    if target_exploitability < 0:
        raise ValueError(f"target_exploitability must be non-negative, got {target_exploitability}")
    if not game.is_allocated:
        raise EngineError("memory is not allocated")
    if game.is_finalized:
        raise EngineError("game is finalized; strategies are frozen")

    config = game.config
    rng = np.random.default_rng(config.seed + game.num_iterations)
    history = game.history()
    best = float("inf")

    executor = ThreadPoolExecutor(config.num_threads) if config.num_threads > 1 else nullcontext()
    with executor as pool:
        for i in range(max_iterations):
            run_iteration(game, rng, pool)

            done = i + 1
            if done % config.check_interval and done != max_iterations:
                continue

            exploitability = compute_exploitability(game)
            best = min(best, exploitability)
            log = logger.info if print_progress else logger.debug
            log("iteration %d: exploitability %.4f", game.num_iterations, exploitability)
            if callback:
                callback(game.num_iterations, exploitability)
            if exploitability <= target_exploitability:
                break

    game.apply_history(history)
    return best
