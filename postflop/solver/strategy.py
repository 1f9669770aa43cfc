"""Strategy tables for decision nodes."""

from dataclasses import dataclass

import numpy as np


@dataclass
class NodeStrategy:
    """
    Regrets and cumulative strategy at one decision node.

    Both tables have shape ``(num_actions, num_hands)`` for the acting
    player and are views into the game's storage arena.

    Chance sampling leaves most per-card nodes unvisited in a given
    iteration. Discounts are therefore applied lazily: each update first
    applies the factors of every iteration since the table was last
    touched, so the result matches discounting once per iteration.
    """
    regret_sum: np.ndarray
    strategy_sum: np.ndarray
    regret_iteration: int = 0       # last iteration whose discount was applied
    strategy_iteration: int = 0

    @property
    def num_actions(self) -> int:
        return self.regret_sum.shape[0]

    def get_strategy(self) -> np.ndarray:
        """
        Current strategy from regrets using regret matching.

        Returns:
            Probability distribution over actions for each hand
        """
        return regret_matching(self.regret_sum)

    def get_average_strategy(self) -> np.ndarray:
        """
        Average strategy over all iterations.

        This converges to Nash equilibrium in two-player zero-sum games.
        """
        return normalize_columns(self.strategy_sum)

    def update_regrets(self, regrets: np.ndarray, iteration: int, alpha: float, beta: float) -> None:
        """
        Discount accumulated regrets, then add this iteration's regrets.

        Args:
            regrets: Instant regret for each action and hand
            iteration: 1-based iteration number
            alpha: Exponent applied to positive regrets
            beta: Exponent applied to negative regrets
        """
        pos, neg = regret_discounts(self.regret_iteration, iteration, alpha, beta)
        self.regret_iteration = max(self.regret_iteration, iteration)
        table = self.regret_sum
        table *= np.where(table > 0, pos, neg).astype(table.dtype)
        table += regrets.astype(table.dtype)

    def update_strategy_sum(self, strategy: np.ndarray, reach: np.ndarray, iteration: int, gamma: float) -> None:
        """
        Discount the cumulative strategy and add ``strategy`` weighted by reach.

        Args:
            strategy: Current strategy (actions x hands)
            reach: Acting player's reach probability per hand
        """
        self.strategy_sum *= strategy_discount(self.strategy_iteration, iteration, gamma)
        self.strategy_iteration = max(self.strategy_iteration, iteration)
        self.strategy_sum += (strategy * reach[np.newaxis, :]).astype(self.strategy_sum.dtype)


def regret_discounts(last: int, iteration: int, alpha: float, beta: float) -> tuple[float, float]:
    """
    Combined positive and negative regret discounts for iterations ``last+1 .. iteration``.

    Regrets keep their sign between updates, so the per-iteration factors
    ``t^a / (t^a + 1)`` multiply.
    """
    if iteration <= last:
        return 1.0, 1.0
    t = np.arange(last + 1, iteration + 1, dtype=np.float64)
    pos = float(np.prod(t ** alpha / (t ** alpha + 1.0)))
    neg = float(np.prod(t ** beta / (t ** beta + 1.0)))
    return pos, neg


def strategy_discount(last: int, iteration: int, gamma: float) -> float:
    """Product of ``(t / (t + 1))^gamma`` over iterations ``last+1 .. iteration``."""
    if iteration <= last:
        return 1.0
    return ((last + 1.0) / (iteration + 1.0)) ** gamma


def regret_matching(regret_sum: np.ndarray) -> np.ndarray:
    """Positive regrets normalized per hand; uniform where none are positive."""
    return normalize_columns(np.maximum(regret_sum, 0.0))


def normalize_columns(table: np.ndarray) -> np.ndarray:
    """Normalize each column to sum to one, uniform for all-zero columns."""
    table = table.astype(np.float64)
    totals = table.sum(axis=0)
    num_actions = table.shape[0]
    out = np.full_like(table, 1.0 / num_actions)
    positive = totals > 0
    out[:, positive] = table[:, positive] / totals[positive]
    return out
