"""
postflop: Post-flop NLHE Subgame Solver

Turns a declarative scenario (ranges, board, pot, stack and bet sizings)
into an approximate Nash equilibrium for a heads-up post-flop subgame and
exports the full strategy tree as a JSON document.
"""

__version__ = "0.1.0"
