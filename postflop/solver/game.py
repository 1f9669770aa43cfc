"""
Solvable post-flop game.

``PostflopGame`` combines a CardConfig with an ActionTree, owns the storage
for every decision node's strategy tables, and answers queries about the node
currently selected by ``apply_history``. The game is cursor based: exactly
one node is current at a time.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from treys import Evaluator

from postflop.errors import ConfigurationError, EngineError
from postflop.game.cards import NUM_CARDS, holes_to_strings
from postflop.game.equity import PrivateHands, hand_strengths, unblocked_reach
from postflop.game.scenario import BoardState, CardConfig
from postflop.game.tree import Action, ActionTree, ActionTreeNode
from .cell import LockedCell
from .config import SolverConfig
from .strategy import NodeStrategy

logger = logging.getLogger(__name__)

_CHUNK_FLOATS = 1 << 20
_STRENGTH_CACHE_SIZE = 4096
_BYTES_PER_ENTRY = 2 * np.dtype(np.float32).itemsize   # regrets + strategy sum


class StorageArena:
    """
    Float32 storage handed out in disjoint slices.

    Every slice belongs to exactly one node, so writes to different nodes
    never overlap. The allocation cursor itself is shared by workers that
    materialize subtrees concurrently and sits behind a LockedCell.
    """

    def __init__(self):
        self._state = LockedCell({"chunks": [], "offset": 0, "allocated": 0})

    def allocate(self, shape: tuple[int, int]) -> np.ndarray:
        size = shape[0] * shape[1]
        # LockedCell: concurrent materialization from several workers
        with self._state.exclusive() as state:
            chunks = state["chunks"]
            if size > _CHUNK_FLOATS:
                chunk = np.zeros(size, dtype=np.float32)
                chunks.insert(0, chunk)
                state["allocated"] += size
                return chunk.reshape(shape)
            if not chunks or state["offset"] + size > _CHUNK_FLOATS:
                chunks.append(np.zeros(_CHUNK_FLOATS, dtype=np.float32))
                state["offset"] = 0
            start = state["offset"]
            state["offset"] += size
            state["allocated"] += size
            return chunks[-1][start:start + size].reshape(shape)

    def bytes_allocated(self) -> int:
        with self._state.shared() as state:
            return state["allocated"] * np.dtype(np.float32).itemsize

    def release(self) -> None:
        self._state.replace({"chunks": [], "offset": 0, "allocated": 0})


@dataclass
class GameNode:
    """
    A materialized node: a betting-tree node plus its strategy storage.

    Chance nodes at a card-specific level keep one child per dealt card;
    deeper chance levels share a single child (key ``None``) across cards.
    """
    tree_node: ActionTreeNode
    chance_level: int = 0
    strategy: Optional[NodeStrategy] = None
    children: list["GameNode"] = field(default_factory=list)
    chance_children: dict = field(default_factory=dict)
    per_card: bool = True

    @property
    def is_terminal(self) -> bool:
        return self.tree_node.is_terminal

    @property
    def is_chance(self) -> bool:
        return self.tree_node.is_chance

    @property
    def player(self) -> int:
        return self.tree_node.player

    @property
    def actions(self) -> list[Action]:
        return self.tree_node.actions


class PostflopGame:
    """
    Post-flop subgame: card config + action tree + strategy storage.

    Usage::

        with PostflopGame.with_config(card_config, action_tree) as game:
            game.allocate_memory()
            solve(game, 1000, target)
            game.cache_normalized_weights()
            ...
    """

    def __init__(
        self,
        card_config: CardConfig,
        action_tree: ActionTree,
        solver_config: Optional[SolverConfig] = None,
    ):
        self.card_config = card_config
        self.action_tree = action_tree
        self.config = solver_config or SolverConfig()
        self.config.validate()

        board = card_config.board
        self.initial_board: tuple[int, ...] = tuple(board)
        self.hands = (
            PrivateHands(card_config.range[0], board),
            PrivateHands(card_config.range[1], board),
        )
        for player, name in ((0, "oop_range"), (1, "ip_range")):
            if len(self.hands[player]) == 0:
                raise ConfigurationError("no hands left after removing board cards", field=name)

        self.same_index = (
            self.hands[0].index_in(self.hands[1]),
            self.hands[1].index_in(self.hands[0]),
        )
        self.num_combinations = float(
            self.hands[0].weights
            @ unblocked_reach(self.hands[0], self.hands[1], self.hands[1].weights, self.same_index[0])
        )
        if self.num_combinations <= 0:
            raise ConfigurationError("ranges have no compatible combinations", field="ip_range")

        self.evaluator = Evaluator()
        self._strengths = LockedCell(OrderedDict())
        self._arena = StorageArena()

        self.root: Optional[GameNode] = None
        self.card_depth = 0
        self.num_iterations = 0
        self._released = False
        self._finalized = False
        self._equity: Optional[tuple[np.ndarray, np.ndarray]] = None
        self._expected_values: Optional[tuple[np.ndarray, np.ndarray]] = None

        self._history: list[int] = []
        self._board: tuple[int, ...] = self.initial_board
        self._node: Optional[GameNode] = None

    @classmethod
    def with_config(
        cls,
        card_config: CardConfig,
        action_tree: ActionTree,
        solver_config: Optional[SolverConfig] = None,
    ) -> "PostflopGame":
        """
        Build a game, checking that cards and betting tree agree.

        Raises:
            ConfigurationError: a range is empty once the board is removed
            EngineError: the tree starts on a different street than the board
        """
        expected = BoardState.infer(card_config.turn, card_config.river)
        if action_tree.config.initial_state != expected:
            raise EngineError(
                f"tree starts on {action_tree.config.initial_state.name} "
                f"but the board is a {expected.name} board",
                field="initial_state",
            )
        return cls(card_config, action_tree, solver_config)

    # Resource lifecycle

    def __enter__(self) -> "PostflopGame":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @property
    def tree_config(self):
        return self.action_tree.config

    @property
    def is_allocated(self) -> bool:
        return self.root is not None

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def estimate_memory(self, card_depth: int) -> int:
        """Bytes needed to materialize every node when ``card_depth`` chance levels are per card."""
        sizes = (len(self.hands[0]), len(self.hands[1]))
        base_cards = NUM_CARDS - len(self.initial_board)
        total = 0
        stack = [(self.action_tree.root, 0, 1)]
        while stack:
            node, level, multiplicity = stack.pop()
            if node.is_player:
                total += multiplicity * len(node.actions) * sizes[node.player] * _BYTES_PER_ENTRY
            if node.is_chance:
                level += 1
                if level <= card_depth:
                    multiplicity *= base_cards - (level - 1)
            stack.extend((child, level, multiplicity) for child in node.children)
        return total

    def allocate_memory(self) -> None:
        """Materialize the starting street and pick the per-card storage depth."""
        if self._released:
            raise EngineError("game has been released")
        if self.is_allocated:
            return

        if self.config.card_depth is not None:
            self.card_depth = self.config.card_depth
        else:
            self.card_depth = 0
            for depth in (2, 1):
                if self.estimate_memory(depth) <= self.config.memory_limit_bytes:
                    self.card_depth = depth
                    break

        self.root = self._materialize(self.action_tree.root, 0)
        self.back_to_root()
        logger.info(
            "Allocated game: %d/%d hands, card depth %d, %.1f MB estimated at full depth",
            len(self.hands[0]), len(self.hands[1]), self.card_depth,
            self.estimate_memory(self.card_depth) / 1e6,
        )

    def memory_usage(self) -> int:
        """Bytes of strategy storage currently allocated."""
        return self._arena.bytes_allocated()

    def release(self) -> None:
        """Drop all strategy storage. Safe to call more than once."""
        if self._released:
            return
        freed = self._arena.bytes_allocated()
        self._arena.release()
        self.root = None
        self._node = None
        self._history = []
        with self._strengths.exclusive() as cache:
            cache.clear()
        self._released = True
        logger.debug("Released game storage (%d bytes)", freed)

    def _materialize(self, tree_node: ActionTreeNode, chance_level: int) -> GameNode:
        node = GameNode(tree_node=tree_node, chance_level=chance_level)
        if tree_node.is_chance:
            node.chance_level = chance_level + 1
            node.per_card = node.chance_level <= self.card_depth
        elif tree_node.is_player:
            shape = (len(tree_node.actions), len(self.hands[tree_node.player]))
            node.strategy = NodeStrategy(
                regret_sum=self._arena.allocate(shape),
                strategy_sum=self._arena.allocate(shape),
            )
            node.children = [self._materialize(child, chance_level) for child in tree_node.children]
        return node

    def chance_child(self, node: GameNode, card: int) -> GameNode:
        """
        Child of a chance node for ``card``, materialized on first use.

        Concurrent callers must work on disjoint chance nodes: the solver
        creates the children of its parallel chance node before dispatching
        workers, and every deeper chance node lies inside one worker's subtree.
        """
        key = card if node.per_card else None
        child = node.chance_children.get(key)
        if child is None:
            child = self._materialize(node.tree_node.children[0], node.chance_level)
            node.chance_children[key] = child
        return child

    def strengths(self, board: tuple[int, ...]) -> tuple[np.ndarray, np.ndarray]:
        """Hand strengths of both players on a complete board (LRU cached)."""
        key = tuple(sorted(board))
        # LockedCell: the cache is shared by every worker
        with self._strengths.exclusive() as cache:
            hit = cache.get(key)
            if hit is not None:
                cache.move_to_end(key)
                return hit
        value = (
            hand_strengths(self.hands[0], key, self.evaluator),
            hand_strengths(self.hands[1], key, self.evaluator),
        )
        with self._strengths.exclusive() as cache:
            cache[key] = value
            while len(cache) > _STRENGTH_CACHE_SIZE:
                cache.popitem(last=False)
        return value

    def available_cards(self, board: tuple[int, ...]) -> list[int]:
        dealt = set(board)
        return [c for c in range(NUM_CARDS) if c not in dealt]

    # Cursor

    def _require_allocated(self) -> GameNode:
        if self._released:
            raise EngineError("game has been released")
        if self._node is None:
            raise EngineError("memory is not allocated")
        return self._node

    def back_to_root(self) -> None:
        self.apply_history([])

    def apply_history(self, history: list[int]) -> None:
        """
        Make the node at ``history`` current.

        Elements are action indices at decision nodes and card ids at chance
        nodes.

        Raises:
            EngineError: the path leaves the tree
        """
        if self._released:
            raise EngineError("game has been released")
        if self.root is None:
            raise EngineError("memory is not allocated")

        node = self.root
        board = self.initial_board
        for depth, element in enumerate(history):
            if node.is_terminal:
                raise EngineError(f"history continues past a terminal node at depth {depth}")
            if node.is_chance:
                if element in board or not 0 <= element < NUM_CARDS:
                    raise EngineError(f"card {element} cannot be dealt at depth {depth}")
                board = board + (element,)
                node = self.chance_child(node, element)
            else:
                if not 0 <= element < len(node.children):
                    raise EngineError(f"action {element} out of range at depth {depth}")
                node = node.children[element]

        self._node = node
        self._board = board
        self._history = list(history)

    def history(self) -> list[int]:
        return list(self._history)

    def current_board(self) -> tuple[int, ...]:
        return self._board

    # Queries on the current node

    def is_chance_node(self) -> bool:
        return self._require_allocated().is_chance

    def is_terminal_node(self) -> bool:
        return self._require_allocated().is_terminal

    def current_player(self) -> int:
        node = self._require_allocated()
        if not node.tree_node.is_player:
            raise EngineError("current node is not a decision node")
        return node.player

    def available_actions(self) -> list[Action]:
        node = self._require_allocated()
        if node.is_chance:
            return [Action(node.actions[0].action_type, c) for c in self.available_cards(self._board)]
        return list(node.actions)

    def strategy(self) -> list[float]:
        """
        Average strategy at the current node.

        Flat and action major: entry ``a * num_hands + h`` is the probability
        that hand ``h`` of the acting player takes action ``a``.
        """
        node = self._require_allocated()
        if node.strategy is None:
            raise EngineError("current node is not a decision node")
        return node.strategy.get_average_strategy().ravel().tolist()

    def pot(self) -> int:
        node = self._require_allocated()
        return self.tree_config.starting_pot + sum(node.tree_node.contrib)

    def stack(self) -> int:
        """Effective stack behind once the current bet is matched."""
        node = self._require_allocated()
        return self.tree_config.effective_stack - max(node.tree_node.contrib)

    # Private hands, equity and EV

    def private_cards(self, player: int) -> list[tuple[int, int]]:
        return list(self.hands[player].hands)

    def private_hand_strings(self, player: int) -> list[str]:
        return holes_to_strings(self.hands[player].hands)

    def num_private_hands(self, player: int) -> int:
        return len(self.hands[player])

    def cache_normalized_weights(self) -> None:
        """
        Freeze the solve and cache equity and expected values at the root.

        Further calls to ``solve`` raise EngineError.
        """
        from .best_response import compute_equity, compute_expected_values

        self._require_allocated()
        if self._finalized:
            return
        history = self.history()
        self._equity = (compute_equity(self, 0), compute_equity(self, 1))
        self._expected_values = (compute_expected_values(self, 0), compute_expected_values(self, 1))
        self._finalized = True
        self.apply_history(history)
        logger.debug("Cached equity and expected values")

    def equity(self, player: int) -> list[float]:
        if self._equity is None:
            raise EngineError("call cache_normalized_weights() first")
        return self._equity[player].tolist()

    def expected_values(self, player: int) -> list[float]:
        if self._expected_values is None:
            raise EngineError("call cache_normalized_weights() first")
        return self._expected_values[player].tolist()
