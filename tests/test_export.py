"""Tests for strategy tree export."""

import numpy as np
import pytest

from postflop.export import HistoryCursor, snapshot, walk
from postflop.solver.cfr import solve
from postflop.solver.config import SolverConfig


@pytest.fixture
def river_game(make_game, river_scenario):
    game = make_game(river_scenario)
    solve(game, 10, 0.0)
    game.cache_normalized_weights()
    return game


@pytest.fixture
def flop_game(make_game, flop_scenario):
    scenario = {**flop_scenario, "oop_range": "AA,QQ", "ip_range": "KK,JJ"}
    game = make_game(scenario, SolverConfig(evaluation_samples=1))
    solve(game, 2, 0.0)
    game.cache_normalized_weights()
    return game


def iter_nodes(node, path=()):
    """Yield (path, exported node) pairs, including empty markers."""
    stack = [(path, node)]
    while stack:
        path, node = stack.pop()
        yield path, node
        if node is not None:
            for i, child in enumerate(node["children"]):
                stack.append((path + (i,), child))


def current_view(game):
    return game.current_player(), game.available_actions(), game.strategy()


class TestHistoryCursor:
    def test_descend_restores_parent(self, river_game):
        cursor = HistoryCursor(river_game)
        before = current_view(river_game)
        for i in range(len(before[1])):
            with cursor.descend(i):
                assert cursor.path == (i,)
                assert river_game.history() == [i]
            assert cursor.path == ()
            assert river_game.history() == []
            assert current_view(river_game) == before

    def test_nested_descend(self, river_game):
        cursor = HistoryCursor(river_game)
        with cursor.descend(1):
            inner = current_view(river_game)
            with cursor.descend(2):
                assert cursor.depth == 2
            assert current_view(river_game) == inner
        assert river_game.history() == []

    def test_restores_on_error(self, river_game):
        cursor = HistoryCursor(river_game)
        with pytest.raises(KeyError):
            with cursor.descend(1):
                raise KeyError("boom")
        assert river_game.history() == []
        assert cursor.path == ()

    def test_starts_at_given_path(self, river_game):
        cursor = HistoryCursor(river_game, [1])
        assert river_game.history() == [1]
        with cursor.descend(0):
            assert river_game.is_terminal_node()
        assert river_game.history() == [1]


class TestSnapshot:
    def test_decision_node(self, river_game):
        node = snapshot(river_game)
        assert node["actions"] == ["Check", {"Bet": 10}]
        assert node["player"] == 0
        assert node["children"] == []
        assert "pot" not in node

    def test_amounts(self, river_game):
        node = snapshot(river_game, include_amounts=True)
        assert node["pot"] == 20
        assert node["stack"] == 100

    def test_terminal_is_empty_marker(self, river_game):
        river_game.apply_history([1, 0])
        assert snapshot(river_game) is None


class TestWalk:
    def test_children_follow_action_order(self, river_game):
        tree = walk(river_game)
        for path, node in iter_nodes(tree):
            if node is None:
                continue
            assert len(node["children"]) == len(node["actions"])
            river_game.apply_history(list(path))
            expected = [a.to_json() for a in river_game.available_actions()]
            assert node["actions"] == expected

    def test_strategy_shape_and_sums(self, river_game):
        tree = walk(river_game)
        for _, node in iter_nodes(tree):
            if node is None:
                continue
            num_hands = river_game.num_private_hands(node["player"])
            assert len(node["strategy"]) == len(node["actions"]) * num_hands
            table = np.array(node["strategy"]).reshape(len(node["actions"]), num_hands)
            assert np.allclose(table.sum(axis=0), 1.0)

    def test_strategy_matches_game(self, river_game):
        tree = walk(river_game)
        for path, node in iter_nodes(tree):
            if node is None:
                continue
            river_game.apply_history(list(path))
            assert node["strategy"] == river_game.strategy()
            assert node["player"] == river_game.current_player()

    def test_empty_markers_are_terminal_or_chance(self, flop_game):
        tree = walk(flop_game)
        markers = [path for path, node in iter_nodes(tree) if node is None]
        assert markers
        seen_chance = False
        for path in markers:
            flop_game.apply_history(list(path))
            assert flop_game.is_terminal_node() or flop_game.is_chance_node()
            seen_chance |= flop_game.is_chance_node()
        assert seen_chance

    def test_walk_restores_history(self, river_game):
        river_game.apply_history([1])
        subtree = walk(river_game)
        assert river_game.history() == [1]
        assert subtree["player"] == 1

    def test_walk_from_terminal(self, river_game):
        river_game.apply_history([1, 0])
        assert walk(river_game) is None

    def test_amounts_on_every_node(self, river_game):
        tree = walk(river_game, include_amounts=True)
        assert tree["pot"] == 20 and tree["stack"] == 100
        bet_node = tree["children"][1]
        assert bet_node["pot"] == 30
        assert bet_node["stack"] == 90
