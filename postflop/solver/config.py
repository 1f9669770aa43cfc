"""Solver configuration."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class SolverConfig:
    """Configuration for the CFR engine."""
    # Discounted CFR parameters
    alpha: float = 1.5             # positive regret discount exponent
    beta: float = 0.5              # negative regret discount exponent
    gamma: float = 3.0             # average strategy discount exponent

    chance_samples: int = 1        # cards sampled per chance event per iteration
    evaluation_samples: int = 8    # cards sampled per chance event when evaluating
    check_interval: int = 10       # iterations between exploitability checks
    num_threads: int = 1           # workers at the first chance level
    seed: int = 0

    # Chance levels whose subtrees get their own storage per dealt card.
    # None picks the deepest level that fits memory_limit_bytes.
    card_depth: Optional[int] = None
    memory_limit_bytes: int = 1 << 30

    def validate(self) -> None:
        if self.chance_samples < 1:
            raise ValueError(f"chance_samples must be >= 1, got {self.chance_samples}")
        if self.evaluation_samples < 1:
            raise ValueError(f"evaluation_samples must be >= 1, got {self.evaluation_samples}")
        if self.check_interval < 1:
            raise ValueError(f"check_interval must be >= 1, got {self.check_interval}")
        if self.num_threads < 1:
            raise ValueError(f"num_threads must be >= 1, got {self.num_threads}")
        if self.card_depth is not None and not 0 <= self.card_depth <= 2:
            raise ValueError(f"card_depth must be in 0..2, got {self.card_depth}")
