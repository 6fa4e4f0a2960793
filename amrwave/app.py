"""
Command-line entry point: a single adaptive run or a Courant number search.

Usage:
    amrwave --config config/examples/plane_wave_2d.yaml
    amrwave --degree 3 --dimension 2 --cfl 0.3 --final-time 0.5
    amrwave --config config/examples/cfl_search.yaml --stability

Examples:
    # Plane wave in 2D with the default low-storage RK
    amrwave --n-refinements 4 --n-adaptive 2 --integrator lsrk45reg2

    # SSP Runge-Kutta (3 stages, order 3), no files written
    amrwave --integrator ssprk --ssp-stages 3 --ssp-order 3 --no-output

    # Stability search for degree 2 starting at CFL 0.5
    amrwave --degree 2 --cfl 0.5 --stability --no-output
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from loguru import logger

from amrwave.config import (
    ConfigurationError,
    SimulationConfig,
    apply_cli_overrides,
    load_yaml,
    save_yaml,
    validate_config,
)
from amrwave.io.plotting import plot_stability_search
from amrwave.solvers.factory import create_problem, create_stability_search
from amrwave.solvers.time_stepping import IntegratorType
from amrwave.utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amrwave",
        description="Linearized Euler equations on an adaptive mesh with explicit RK time stepping",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--config', '-c', help="YAML config file (CLI values override it)")

    # Discretization
    parser.add_argument('--degree', '-p', type=int, help="Polynomial degree (1-5)")
    parser.add_argument('--dimension', '-d', type=int, help="Space dimension (2 or 3)")
    parser.add_argument('--case', type=int, help="Initial condition: 1 = plane wave, 2 = Gaussian pulse")

    # Time window
    parser.add_argument('--cfl', type=float, help="Courant number")
    parser.add_argument('--final-time', type=float, help="End time of the run")
    parser.add_argument('--output-interval', type=float, help="Time between outputs")
    parser.add_argument('--max-steps', type=int, help="Maximum number of time steps")

    # Mesh
    parser.add_argument('--n-refinements', type=int, help="Uniform refinement levels")
    parser.add_argument('--n-adaptive', type=int, help="Adaptive levels above the uniform mesh")
    parser.add_argument('--adapt-interval', type=int, help="Steps between adaptation events")

    # Integrator
    parser.add_argument('--integrator', choices=[k.value for k in IntegratorType],
                        help="Explicit time integrator")
    parser.add_argument('--ssp-stages', type=int, help="Stages of the SSP Runge-Kutta scheme")
    parser.add_argument('--ssp-order', type=int, help="Order of the SSP Runge-Kutta scheme")

    # Modes and output
    parser.add_argument('--stability', action='store_true',
                        help="Run the Courant number stability search")
    parser.add_argument('--output-dir', '-o', type=str, help="Output directory")
    parser.add_argument('--no-output', action='store_true', help="Do not write any files")
    parser.add_argument('--log-level', type=str,
                        choices=['DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR'],
                        help="Logging level")
    return parser


def load_config(args) -> SimulationConfig:
    config = load_yaml(args.config) if args.config else SimulationConfig()
    config = apply_cli_overrides(config, args)
    return validate_config(config)


def run_single(config: SimulationConfig) -> int:
    result = create_problem(config).run()
    if config.stability.enabled and not result.stable:
        logger.warning("Run was truncated: solution became unstable")
    return 0


def run_stability_search(config: SimulationConfig) -> int:
    search = create_stability_search(config)
    degree = config.discretization.degree
    bracket = search.search(config.time.cfl, degree)

    if config.output.enabled and config.output.plot_history:
        path = plot_stability_search(bracket, degree, config.output.directory,
                                     f"cfl_search_deg{degree}")
        if path:
            logger.info(f"Stability search plot: {path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
        log_file = None
        if config.output.enabled and config.logging.to_file:
            log_file = Path(config.output.directory) / "amrwave.log"
        setup_logging(config.logging.level, config.logging.show_time, log_file)

        if config.output.enabled:
            used = Path(config.output.directory) / "config_used.yaml"
            save_yaml(config, used)
            logger.info(f"Configuration written to {used}")
    except (FileNotFoundError, yaml.YAMLError, ConfigurationError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    except OSError as e:
        logger.error(f"Cannot prepare output directory: {e}")
        return 1

    try:
        if config.stability.enabled:
            return run_stability_search(config)
        return run_single(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Simulation interrupted by user.")
        return 1
    except Exception:
        logger.exception("Aborting!")
        return 1


if __name__ == "__main__":
    sys.exit(main())
