#!/usr/bin/env python3
"""Solve a post-flop job and write its strategy tree."""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from postflop.errors import PostflopError
from postflop.pipeline import PipelineConfig, job_paths, run_job
from postflop.solver.config import SolverConfig


def main():
    parser = argparse.ArgumentParser(
        description="Solve a post-flop spot described by a JSON job file"
    )
    parser.add_argument(
        "job",
        nargs="?",
        help="Job id: reads <job>.input.json, writes <job>.output.json",
    )
    parser.add_argument(
        "-i", "--input",
        help="Input document (default: input.json, or the job's input file)",
    )
    parser.add_argument(
        "-o", "--output",
        help="Output document (default: output.json, or the job's output file)",
    )
    parser.add_argument(
        "-d", "--directory",
        default=".",
        help="Directory holding job files (default: current directory)",
    )
    parser.add_argument(
        "--batch",
        action="store_true",
        help="Batch mode: larger iteration cap, node pot/stack and solve stats (implied by a job id)",
    )
    parser.add_argument(
        "-n", "--iterations",
        type=int,
        help="Override the iteration cap",
    )
    parser.add_argument(
        "-t", "--threads",
        type=int,
        default=1,
        help="Worker threads at the first chance level (default: 1)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed for chance sampling (default: 0)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()
    console = Console(stderr=True)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=args.verbose)],
    )

    if args.job:
        try:
            input_path, output_path = job_paths(args.job, args.directory)
        except ValueError as e:
            console.print(f"[red]{e}[/]")
            return 1
    else:
        input_path, output_path = Path("input.json"), Path("output.json")
    input_path = Path(args.input) if args.input else input_path
    output_path = Path(args.output) if args.output else output_path

    solver = SolverConfig(num_threads=args.threads, seed=args.seed)
    overrides = {"solver": solver}
    if args.iterations is not None:
        overrides["max_iterations"] = args.iterations
    if args.batch or args.job:
        config = PipelineConfig.batch(**overrides)
    else:
        config = PipelineConfig.interactive(**overrides)

    console.print(f"[bold]Input:[/] {input_path}")
    try:
        output = run_job(input_path, output_path, config)
    except PostflopError as e:
        console.print(f"[red]Job failed:[/] {e}")
        return 1
    except OSError as e:
        console.print(f"[red]Cannot read or write job files:[/] {e}")
        return 1

    _display_summary(console, output)
    console.print(f"\n[bold]Strategy tree saved to:[/] {output_path}")
    return 0


def _display_summary(console: Console, output: dict) -> None:
    """Display root actions and average equity."""
    table = Table(title=f"Solved ({output['initial_state']})", show_header=True, header_style="bold")
    table.add_column("Player", style="cyan")
    table.add_column("Hands", justify="right")
    table.add_column("Avg equity", justify="right")
    table.add_column("Avg EV", justify="right")

    for player in (0, 1):
        equity = output[f"equity_{player}"]
        ev = output[f"expected_values_{player}"]
        n = len(output[f"hands_{player}"])
        table.add_row(
            "OOP" if player == 0 else "IP",
            str(n),
            f"{sum(equity) / n:.1%}" if n else "-",
            f"{sum(ev) / n:.2f}" if n else "-",
        )
    console.print(table)

    root = output["nodes"]
    if root is not None:
        actions = ", ".join(_format_action(a) for a in root["actions"])
        console.print(f"[bold]Root actions:[/] {actions}")
    if "exploitability" in output:
        console.print(f"[bold]Exploitability:[/] {output['exploitability']:.4f} after {output['iterations']} iterations")


def _format_action(action) -> str:
    """Render an exported action such as {"Bet": 10} as plain text."""
    if isinstance(action, dict):
        (name, amount), = action.items()
        return f"{name} {amount}"
    return action


if __name__ == "__main__":
    sys.exit(main())
