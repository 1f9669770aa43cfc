"""
Strategy tree export.

Walks a solved PostflopGame and rebuilds the explicit strategy tree. The
game is cursor based, so the walk moves through it only via
``HistoryCursor.descend``: entering the context applies the child's path and
leaving it re-applies the parent's, whatever happens in between.
"""

import logging
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from postflop.solver.game import PostflopGame

logger = logging.getLogger(__name__)


class HistoryCursor:
    """The history path applied to a game, kept in lock step with it."""

    def __init__(self, game: PostflopGame, path: Optional[list[int]] = None):
        self.game = game
        self._path = list(path) if path is not None else game.history()
        game.apply_history(self._path)

    @property
    def path(self) -> tuple[int, ...]:
        return tuple(self._path)

    @property
    def depth(self) -> int:
        return len(self._path)

    @contextmanager
    def descend(self, index: int) -> Iterator["HistoryCursor"]:
        """Apply ``path + [index]`` for the duration of the block."""
        self._path.append(index)
        try:
            self.game.apply_history(self._path)
            yield self
        finally:
            self._path.pop()
            self.game.apply_history(self._path)


def snapshot(game: PostflopGame, include_amounts: bool = False) -> Optional[dict[str, Any]]:
    """
    Serialize the current node without its children.

    Returns:
        None at chance and terminal nodes, otherwise a node dict with an
        empty ``children`` list
    """
    if game.is_chance_node() or game.is_terminal_node():
        return None

    node = {
        "actions": [action.to_json() for action in game.available_actions()],
        "strategy": game.strategy(),
        "player": game.current_player(),
        "children": [],
    }
    if include_amounts:
        node["pot"] = game.pot()
        node["stack"] = game.stack()
    return node


@dataclass
class _Frame:
    """A decision node on the walk stack and the scope that entered it."""
    node: dict[str, Any]
    scope: ExitStack
    next_action: int = 0
    num_actions: int = field(init=False)

    def __post_init__(self):
        self.num_actions = len(self.node["actions"])


def walk(game: PostflopGame, include_amounts: bool = False) -> Optional[dict[str, Any]]:
    """
    Rebuild the strategy tree below the game's current node.

    Depth first over an explicit stack of frames. Each frame holds the
    ``descend`` scope it was entered with; closing that scope is the only way
    a frame leaves the stack, so the parent's path is always re-applied
    before the next sibling is visited.

    Args:
        game: Finalized game
        include_amounts: Add ``pot`` and ``stack`` to every decision node

    Returns:
        Nested node dicts; None if the starting node is chance or terminal
    """
    cursor = HistoryCursor(game)
    root = snapshot(game, include_amounts)
    if root is None:
        return None

    stack = [_Frame(root, ExitStack())]
    visited = 1
    try:
        while stack:
            frame = stack[-1]
            if frame.next_action == frame.num_actions:
                stack.pop()
                frame.scope.close()
                continue

            index = frame.next_action
            frame.next_action += 1

            scope = ExitStack()
            scope.enter_context(cursor.descend(index))
            child = snapshot(game, include_amounts)
            frame.node["children"].append(child)
            if child is None:
                scope.close()
                continue
            visited += 1
            stack.append(_Frame(child, scope))
    finally:
        # Unwind innermost first so the starting path is restored on error
        while stack:
            stack.pop().scope.close()

    logger.debug("Exported %d decision nodes", visited)
    return root
