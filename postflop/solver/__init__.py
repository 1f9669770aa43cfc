"""Solver engine module."""

from .cell import LockedCell, PartitionedArray, SharedCell
from .config import SolverConfig
from .game import PostflopGame
from .cfr import solve
from .best_response import compute_exploitability

__all__ = [
    "LockedCell",
    "PartitionedArray",
    "SharedCell",
    "SolverConfig",
    "PostflopGame",
    "solve",
    "compute_exploitability",
]
