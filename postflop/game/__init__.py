"""Game representation module."""

from .cards import NOT_DEALT, card_from_str, card_to_str, flop_from_str, holes_to_strings
from .ranges import Range, parse_range
from .scenario import BoardState, CardConfig, normalize_scenario
from .abstraction import BetSizeOptions, DonkSizeOptions, TreeConfig, build_tree_config
from .tree import Action, ActionTree, ActionType, NodeType

__all__ = [
    "NOT_DEALT",
    "card_from_str",
    "card_to_str",
    "flop_from_str",
    "holes_to_strings",
    "Range",
    "parse_range",
    "BoardState",
    "CardConfig",
    "normalize_scenario",
    "BetSizeOptions",
    "DonkSizeOptions",
    "TreeConfig",
    "build_tree_config",
    "Action",
    "ActionTree",
    "ActionType",
    "NodeType",
]
