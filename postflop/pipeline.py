"""
Scenario-to-strategy-tree pipeline.

One pipeline for both ways of running a job: interactive (one scenario, a
modest iteration cap) and batch (job files, larger cap, node pot/stack and
solve statistics in the output). ``PipelineConfig`` picks the mode.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from postflop.errors import ConfigurationError
from postflop.export import walk
from postflop.game.abstraction import build_tree_config
from postflop.game.scenario import normalize_scenario
from postflop.game.tree import ActionTree
from postflop.solver.cfr import solve
from postflop.solver.config import SolverConfig
from postflop.solver.game import PostflopGame

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass
class PipelineConfig:
    """How a job is solved and what its output document contains."""
    max_iterations: int = 1000
    target_exploitability_ratio: float = 0.005   # fraction of the starting pot
    include_node_amounts: bool = False           # pot/stack on every decision node
    include_solve_stats: bool = False            # exploitability and iterations
    print_progress: bool = False
    solver: SolverConfig = field(default_factory=SolverConfig)

    @classmethod
    def interactive(cls, **kwargs) -> "PipelineConfig":
        return cls(**{"max_iterations": 1000, "print_progress": True, **kwargs})

    @classmethod
    def batch(cls, **kwargs) -> "PipelineConfig":
        defaults = {
            "max_iterations": 3000,
            "include_node_amounts": True,
            "include_solve_stats": True,
        }
        return cls(**{**defaults, **kwargs})


def run_pipeline(scenario: Mapping[str, Any], config: Optional[PipelineConfig] = None) -> dict[str, Any]:
    """
    Solve one scenario and build its output document.

    Args:
        scenario: Input document (ranges, board, pot, stack, sizings)
        config: Pipeline mode; interactive by default

    Returns:
        Output document with equity, expected values, hands and the
        strategy tree under ``nodes``

    Raises:
        ConfigurationError, AbstractionError, EngineError
    """
    config = config or PipelineConfig.interactive()
    if not isinstance(scenario, Mapping):
        raise ConfigurationError("input document must be a JSON object", stage="config")

    card_config, initial_state = normalize_scenario(scenario)
    logger.info("Scenario: board %s, starting on the %s", card_config.board_str(), initial_state.name)

    tree_config = build_tree_config(scenario, initial_state)
    action_tree = ActionTree(tree_config)
    logger.info("Action tree: %s", action_tree.count_nodes())

    with PostflopGame.with_config(card_config, action_tree, config.solver) as game:
        game.allocate_memory()

        target = tree_config.starting_pot * config.target_exploitability_ratio
        exploitability = solve(game, config.max_iterations, target, print_progress=config.print_progress)
        logger.info(
            "Solved in %d iterations, exploitability %.4f (target %.4f)",
            game.num_iterations, exploitability, target,
        )

        game.cache_normalized_weights()
        game.back_to_root()

        output = {
            "equity_0": game.equity(0),
            "equity_1": game.equity(1),
            "expected_values_0": game.expected_values(0),
            "expected_values_1": game.expected_values(1),
            "initial_state": initial_state.name,
            "hands_0": game.private_hand_strings(0),
            "hands_1": game.private_hand_strings(1),
            "nodes": walk(game, include_amounts=config.include_node_amounts),
        }
        if config.include_solve_stats:
            output["exploitability"] = exploitability
            output["iterations"] = game.num_iterations

    return output


def job_paths(job_id: str, directory: PathLike = ".") -> tuple[Path, Path]:
    """Input and output file for a job: ``<job>.input.json`` and ``<job>.output.json``."""
    if not job_id or os.sep in job_id or (os.altsep and os.altsep in job_id):
        raise ValueError(f"Invalid job id: {job_id!r}")
    directory = Path(directory)
    return directory / f"{job_id}.input.json", directory / f"{job_id}.output.json"


def read_scenario(path: PathLike) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        try:
            return json.load(f)
        except UnicodeDecodeError as e:
            raise ConfigurationError(f"input is not valid UTF-8: {e}", stage="config") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid JSON: {e}", stage="config") from e


def run_job(input_path: PathLike, output_path: PathLike, config: Optional[PipelineConfig] = None) -> dict[str, Any]:
    """
    Read a job's input document, solve it and write the output document.

    The output file is written only once the whole document exists, so a
    failed job leaves no output behind.
    """
    scenario = read_scenario(input_path)
    output = run_pipeline(scenario, config)

    output_path = Path(output_path)
    tmp_path = output_path.with_name(output_path.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)
        os.replace(tmp_path, output_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    logger.info("Wrote %s", output_path)
    return output
