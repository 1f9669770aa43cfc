"""Pytest configuration and fixtures."""

import pytest

from postflop.game.abstraction import build_tree_config
from postflop.game.scenario import normalize_scenario
from postflop.game.tree import ActionTree
from postflop.solver.config import SolverConfig
from postflop.solver.game import PostflopGame


@pytest.fixture
def flop_scenario():
    """Full ranges on Td9d6h, 20 in the pot, 100 behind, 50% sizing."""
    return {
        "oop_range": "random hands",
        "ip_range": "random hands",
        "flop": "Td9d6h",
        "starting_pot": 20,
        "effective_stack": 100,
        "bet_size": "50%",
        "raise_size": "50%",
    }


@pytest.fixture
def river_scenario():
    """Small ranges on a complete board, cheap enough to solve in tests."""
    return {
        "oop_range": "AA,QQ,72o",
        "ip_range": "KK,JJ,AKs",
        "flop": "2c7d9h",
        "turn": "Js",
        "river": "3c",
        "starting_pot": 20,
        "effective_stack": 100,
        "bet_size": "50%",
        "raise_size": "50%",
    }


@pytest.fixture
def fast_solver_config():
    return SolverConfig(evaluation_samples=1, check_interval=5, seed=1)


@pytest.fixture
def make_game():
    """Build an allocated PostflopGame from a scenario; released after the test."""
    games = []

    def _make_game(scenario, solver_config=None, **overrides):
        card_config, initial_state = normalize_scenario(scenario)
        tree = ActionTree(build_tree_config(scenario, initial_state, **overrides))
        game = PostflopGame.with_config(card_config, tree, solver_config)
        game.allocate_memory()
        games.append(game)
        return game

    yield _make_game

    for game in games:
        game.release()
