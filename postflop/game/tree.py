"""Action tree representation for a post-flop subgame.

The action tree is card independent: chance nodes have a single child that
stands for every possible dealt card. The solver materializes one copy of a
street's subtree per dealt card on demand.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

from .abstraction import BetSize, SizeKind, TreeConfig
from .scenario import BoardState

logger = logging.getLogger(__name__)

PLAYER_OOP = 0
PLAYER_IP = 1

_MERGE_EPS = 1e-12


class NodeType(Enum):
    """Types of nodes in a game tree."""
    PLAYER = auto()       # Player decision node
    CHANCE = auto()       # Chance node (card deal)
    TERMINAL = auto()     # End of hand (showdown or fold)


class ActionType(Enum):
    """Available actions at a node, in display order."""
    NONE = 0
    FOLD = 1
    CHECK = 2
    CALL = 3
    BET = 4
    RAISE = 5
    ALL_IN = 6
    CHANCE = 7


_JSON_NAMES = {
    ActionType.NONE: "None",
    ActionType.FOLD: "Fold",
    ActionType.CHECK: "Check",
    ActionType.CALL: "Call",
    ActionType.BET: "Bet",
    ActionType.RAISE: "Raise",
    ActionType.ALL_IN: "AllIn",
    ActionType.CHANCE: "Chance",
}


@dataclass(frozen=True)
class Action:
    """An action in the game tree; amount is the street-level bet-to size."""
    action_type: ActionType
    amount: int = 0

    @property
    def is_aggressive(self) -> bool:
        return self.action_type in (ActionType.BET, ActionType.RAISE, ActionType.ALL_IN)

    def sort_key(self) -> tuple[int, int]:
        # Bets and raises interleave with all-in by amount
        rank = self.action_type.value
        if self.is_aggressive:
            rank = ActionType.BET.value
        return (rank, self.amount)

    def to_json(self):
        """Externally tagged form: 'Check' or {'Bet': 10}."""
        name = _JSON_NAMES[self.action_type]
        if self.is_aggressive or self.action_type == ActionType.CHANCE:
            return {name: self.amount}
        return name

    def __str__(self) -> str:
        if self.is_aggressive:
            return f"{self.action_type.name}_{self.amount}"
        return self.action_type.name


NO_ACTION = Action(ActionType.NONE)


@dataclass
class ActionTreeNode:
    """
    A node in the card-independent betting tree.

    ``contrib`` holds each player's chips committed beyond the starting pot.
    Terminal nodes record who folded (``None`` for a showdown).
    """
    node_type: NodeType
    street: BoardState
    player: int = PLAYER_OOP
    contrib: tuple[int, int] = (0, 0)
    prev_action: Action = NO_ACTION
    folded_player: Optional[int] = None
    actions: list[Action] = field(default_factory=list)
    children: list["ActionTreeNode"] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.node_type == NodeType.TERMINAL

    @property
    def is_chance(self) -> bool:
        return self.node_type == NodeType.CHANCE

    @property
    def is_player(self) -> bool:
        return self.node_type == NodeType.PLAYER

    def payoff_amount(self, half_pot: float) -> float:
        """Chips won by the winner (lost by the loser) at a terminal node."""
        if self.folded_player is not None:
            return half_pot + self.contrib[self.folded_player]
        return half_pot + max(self.contrib)


@dataclass(frozen=True)
class _BuildInfo:
    """Betting state carried down the tree while building."""
    street: BoardState
    contrib: tuple[int, int] = (0, 0)
    street_start: int = 0
    num_bets: int = 0
    last_aggressor: Optional[int] = None
    prev_street_aggressor: Optional[int] = None


class ActionTree:
    """
    Complete betting tree for a subgame.

    Builds the explicit action set at every decision point from a
    TreeConfig: bet/raise/donk sizes, all-in insertion and forcing, and
    merging of near-duplicate sizes.
    """

    def __init__(self, config: TreeConfig):
        config.validate()
        self.config = config
        self.root = self._build(
            ActionTreeNode(node_type=NodeType.PLAYER, street=config.initial_state),
            _BuildInfo(street=config.initial_state),
        )
        logger.debug("Built action tree: %s", self.count_nodes())

    def _build(self, node: ActionTreeNode, info: _BuildInfo) -> ActionTreeNode:
        if node.is_terminal:
            return node

        if node.is_chance:
            node.actions = [Action(ActionType.CHANCE)]
            node.children = [self._build(self._after_chance(node, info), info)]
            return node

        node.actions = self.compute_actions(node, info)
        for action in node.actions:
            child, child_info = self._make_child(node, info, action)
            node.children.append(self._build(child, child_info))
        return node

    def compute_actions(self, node: ActionTreeNode, info: _BuildInfo) -> list[Action]:
        """Legal abstract actions for the player to act at ``node``."""
        cfg = self.config
        player = node.player
        opponent = player ^ 1
        contrib = info.contrib

        prev_amount = max(contrib) - info.street_start
        to_call = contrib[opponent] - contrib[player]
        pot = cfg.starting_pot + 2 * max(contrib)
        max_amount = cfg.effective_stack - info.street_start
        spr_after_call = (cfg.effective_stack - max(contrib)) / pot

        options = cfg.bet_sizes(info.street)[player]
        donk = cfg.donk_sizes(info.street)
        is_donk = (
            donk is not None
            and node.prev_action.action_type == ActionType.CHANCE
            and info.prev_street_aggressor is not None
            and info.prev_street_aggressor != player
        )

        actions: list[Action] = []
        if to_call == 0:
            actions.append(Action(ActionType.CHECK))
            sizes = donk.donk if is_donk else options.bet
            kind = ActionType.BET
            min_amount = 1
        else:
            actions.append(Action(ActionType.FOLD))
            actions.append(Action(ActionType.CALL))
            if contrib[opponent] >= cfg.effective_stack:
                return actions
            sizes = options.raise_
            kind = ActionType.RAISE
            min_amount = prev_amount + to_call

        for size in sizes:
            amount = self._size_to_amount(size, info, prev_amount, pot, spr_after_call)
            if amount is None:
                continue
            actions.append(self._adjust(kind, amount, min_amount, max_amount, info))

        if max_amount <= round(pot * cfg.add_allin_threshold) + prev_amount:
            actions.append(Action(ActionType.ALL_IN, max_amount))

        actions = sorted(set(actions), key=Action.sort_key)
        return merge_bet_actions(actions, pot, prev_amount, cfg.merging_threshold)

    def _size_to_amount(
        self,
        size: BetSize,
        info: _BuildInfo,
        prev_amount: int,
        pot: int,
        spr_after_call: float,
    ) -> Optional[int]:
        """Street-level bet-to amount for one sizing token."""
        if size.kind == SizeKind.POT_RELATIVE:
            return prev_amount + round(pot * size.value)
        if size.kind == SizeKind.PREV_BET_RELATIVE:
            return round(prev_amount * size.value)
        if size.kind == SizeKind.ADDITIVE:
            raises_made = max(info.num_bets - 1, 0)
            if info.num_bets > 0 and size.cap and raises_made + 1 > size.cap:
                return None
            return prev_amount + int(size.value)
        if size.kind == SizeKind.GEOMETRIC:
            num_streets = int(size.value) or streets_remaining(info.street)
            ratio = ((2.0 * spr_after_call + 1.0) ** (1.0 / num_streets) - 1.0) / 2.0
            return prev_amount + round(pot * min(ratio, size.cap))
        return self.config.effective_stack - info.street_start

    def _adjust(
        self,
        kind: ActionType,
        amount: int,
        min_amount: int,
        max_amount: int,
        info: _BuildInfo,
    ) -> Action:
        """Clamp to legal bounds and apply the force-all-in threshold."""
        cfg = self.config
        amount = min(max(amount, min_amount), max_amount)
        if amount >= max_amount:
            return Action(ActionType.ALL_IN, max_amount)

        committed = info.street_start + amount
        pot_after_call = cfg.starting_pot + 2 * committed
        stack_after_call = cfg.effective_stack - committed
        if stack_after_call / pot_after_call <= cfg.force_allin_threshold:
            return Action(ActionType.ALL_IN, max_amount)

        return Action(kind, amount)

    def _make_child(
        self,
        node: ActionTreeNode,
        info: _BuildInfo,
        action: Action,
    ) -> tuple[ActionTreeNode, _BuildInfo]:
        """Create the child node reached by ``action``."""
        player = node.player
        opponent = player ^ 1
        contrib = list(info.contrib)

        if action.action_type == ActionType.FOLD:
            child = ActionTreeNode(
                node_type=NodeType.TERMINAL,
                street=info.street,
                player=opponent,
                contrib=info.contrib,
                prev_action=action,
                folded_player=player,
            )
            return child, info

        if action.action_type == ActionType.CHECK and player == PLAYER_OOP:
            child = ActionTreeNode(
                node_type=NodeType.PLAYER,
                street=info.street,
                player=opponent,
                contrib=info.contrib,
                prev_action=action,
            )
            return child, info

        if action.action_type in (ActionType.CHECK, ActionType.CALL):
            contrib[player] = contrib[opponent]
            return self._end_street(info, tuple(contrib), action)

        # Bet, raise or all-in
        contrib[player] = info.street_start + action.amount
        child_info = _BuildInfo(
            street=info.street,
            contrib=tuple(contrib),
            street_start=info.street_start,
            num_bets=info.num_bets + 1,
            last_aggressor=player,
            prev_street_aggressor=info.prev_street_aggressor,
        )
        child = ActionTreeNode(
            node_type=NodeType.PLAYER,
            street=info.street,
            player=opponent,
            contrib=child_info.contrib,
            prev_action=action,
        )
        return child, child_info

    def _end_street(
        self,
        info: _BuildInfo,
        contrib: tuple[int, int],
        action: Action,
    ) -> tuple[ActionTreeNode, _BuildInfo]:
        """Closing action: showdown on the river, otherwise deal the next card."""
        if info.street == BoardState.River:
            child = ActionTreeNode(
                node_type=NodeType.TERMINAL,
                street=info.street,
                contrib=contrib,
                prev_action=action,
            )
            return child, info

        next_street = BoardState(info.street.value + 1)
        child_info = _BuildInfo(
            street=next_street,
            contrib=contrib,
            street_start=contrib[0],
            prev_street_aggressor=info.last_aggressor,
        )
        child = ActionTreeNode(
            node_type=NodeType.CHANCE,
            street=next_street,
            contrib=contrib,
            prev_action=action,
        )
        return child, child_info

    def _after_chance(self, node: ActionTreeNode, info: _BuildInfo) -> ActionTreeNode:
        """Node following a dealt card: OOP to act, or an all-in runout."""
        if max(node.contrib) < self.config.effective_stack:
            return ActionTreeNode(
                node_type=NodeType.PLAYER,
                street=node.street,
                player=PLAYER_OOP,
                contrib=node.contrib,
                prev_action=Action(ActionType.CHANCE),
            )
        if node.street == BoardState.River:
            return ActionTreeNode(
                node_type=NodeType.TERMINAL,
                street=node.street,
                contrib=node.contrib,
                prev_action=Action(ActionType.CHANCE),
            )
        return ActionTreeNode(
            node_type=NodeType.CHANCE,
            street=BoardState(node.street.value + 1),
            contrib=node.contrib,
            prev_action=Action(ActionType.CHANCE),
        )

    def count_nodes(self) -> dict[str, int]:
        """Count nodes by type."""
        counts = {
            "total": 0,
            "player": 0,
            "chance": 0,
            "terminal": 0,
        }

        stack = [self.root]
        while stack:
            node = stack.pop()
            counts["total"] += 1
            if node.is_player:
                counts["player"] += 1
            elif node.is_chance:
                counts["chance"] += 1
            else:
                counts["terminal"] += 1
            stack.extend(node.children)

        return counts


def streets_remaining(street: BoardState) -> int:
    return 3 - street.value


def merge_bet_actions(actions: list[Action], pot: int, offset: int, param: float) -> list[Action]:
    """
    Merge bet sizes whose pot ratios are within ``param`` of each other.

    Scans from the largest size down; a size is kept only if its ratio is
    below ``(kept_ratio - param) / (1 + param)`` of the last kept size.
    Non-betting actions are always kept. ``actions`` must be sorted.
    """
    current = float("inf")
    merged = []
    for action in reversed(actions):
        if not action.is_aggressive:
            merged.append(action)
            continue
        ratio = (action.amount - offset) / pot
        threshold = (current - param) / (1.0 + param)
        if ratio < threshold * (1.0 - _MERGE_EPS):
            merged.append(action)
            current = ratio
    merged.reverse()
    return merged
