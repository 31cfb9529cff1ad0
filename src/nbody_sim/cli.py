"""
Command-line entrypoint for nbody-sim runs.

Loads initial bodies (and optionally a YAML/JSON configuration), advances them
on the fixed tick and writes HDF5 snapshots.

Usage:
    nbody-sim bodies.toml
    nbody-sim bodies.toml --config run.yaml --ticks 1000
    nbody-sim --help
"""

import argparse
import sys
from typing import List, Optional

from nbody_sim.config import load_bodies, load_config
from nbody_sim.core import Simulation, SimulationConfig
from nbody_sim.core.errors import DegenerateGeometryError, MalformedInputError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nbody-sim",
        description="Run a fixed-tick N-body gravity simulation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("bodies", type=str,
                        help="Initial body file (.toml, .yaml, .yml or .json)")
    parser.add_argument("--config", "-c", type=str, default=None,
                        help="Simulation configuration file (.yaml, .yml or .json)")
    parser.add_argument("--ticks", "-n", type=int, default=None,
                        help="Number of ticks to run (default: run until t_end)")
    parser.add_argument("--dt", type=float, default=None,
                        help="Fixed tick duration (overrides config)")
    parser.add_argument("--output-dir", "-o", type=str, default=None,
                        help="Output directory for snapshots (overrides config)")
    parser.add_argument("--snapshot-interval", type=float, default=None,
                        help="Snapshot interval in simulated time (overrides config)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Suppress verbose output")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint."""
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.dt is not None:
        overrides['dt'] = args.dt
    if args.output_dir is not None:
        overrides['output_dir'] = args.output_dir
    if args.snapshot_interval is not None:
        overrides['snapshot_interval'] = args.snapshot_interval
    if args.quiet:
        overrides['verbose'] = False

    if args.ticks is not None and args.ticks < 0:
        print(f"Error: --ticks must be non-negative, got {args.ticks}", file=sys.stderr)
        return 2

    try:
        if args.config is not None:
            config = load_config(args.config, **overrides)
        else:
            config = SimulationConfig(**overrides)

        bodies = load_bodies(args.bodies)

        if config.verbose:
            print("=" * 60)
            print("nbody-sim: fixed-tick N-body gravity")
            print("=" * 60)
            print(f"Loaded {bodies.n_bodies} bodies from {args.bodies}")

        sim = Simulation(bodies, config=config)
        sim.run(n_ticks=args.ticks)
    except (FileNotFoundError, ValueError, MalformedInputError, DegenerateGeometryError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if config.verbose:
        print("\n" + "=" * 60)
        print("Simulation complete!")
        print(f"Ticks: {sim.state.tick}  Final time: {sim.state.time:.6g}")
        if config.snapshot_interval is not None:
            print(f"Output directory: {config.output_dir}")
            print(f"Snapshots: {sim.state.snapshot_count}")
        print("=" * 60)

    return 0


if __name__ == "__main__":
    sys.exit(main())
