#!/usr/bin/env python3
"""
Main entry point for the Bayesian model comparison runner.

Fits every candidate model in a spec file to one dataset, scores the fits
by PSIS-LOO and prints the ranking.

Usage:
    bayes-compare --data data.csv --specs specs.json
    bayes-compare --data data.parquet --specs specs.json --draws 2000 --seed 42
    bayes-compare --data data.csv --specs specs.json --config config.json --save
"""
import argparse
import sys
from pathlib import Path

import pandas as pd

from config.config_manager import ConfigManager
from data.data_loader import DatasetLoader, load_model_specs
from model.exceptions import BayesCompareError, ScoringError
from model.model_runner import ModelRunner
from utils.logging_utils import LoggingManager, get_logger
from utils.results_manager import ResultsManager

# Get logger for this module
logger = get_logger()


def main(argv=None):
    """Main entry point; returns the process exit code."""
    args = parse_arguments(argv)

    try:
        config_manager = setup_config(args)
        app_config = config_manager.app_config
        setup_logging(args.log_level or app_config.log_level, app_config.log_file)

        dataset = DatasetLoader(args.data).load()
        specs = load_model_specs(args.specs)
        sampling_config = config_manager.to_sampling_config(
            chains=args.chains,
            draws=args.draws,
            tune=args.tune,
            random_seed=args.seed,
            target_accept=args.target_accept,
            max_workers=args.max_workers,
            fit_timeout=args.timeout,
            backend=args.backend,
        )

        report = ModelRunner().run(dataset, specs, sampling_config)
    except BayesCompareError as e:
        logger.error(f"Comparison failed: {str(e)}")
        return 1

    print_report(report)

    if args.save or (app_config.save_results and args.results_dir):
        manager = ResultsManager(app_config.results_dir, experiment_name=args.experiment_name)
        manager.save_report(report, save_traces=args.save_traces)
        config_manager.save_config(Path(manager.results_dir) / "config.json")
        logger.info(f"Results saved to {manager.results_dir}")

    return 0


def print_report(report):
    """Print per-spec outcomes and, with two or more scored models, the ranking."""
    with pd.option_context("display.max_columns", None, "display.width", 120):
        print(report.to_frame().to_string())
        print()
        try:
            print(report.compare().to_string(float_format=lambda v: f"{v:.2f}"))
        except ScoringError as e:
            print(f"No ranking: {str(e)}")

    for name, outcome in report.items():
        if outcome.message:
            print(f"{name}: {outcome.error_kind}: {outcome.message}")


def setup_config(args):
    """
    Set up and validate configuration.

    Args:
        args: Command line arguments

    Returns:
        ConfigManager instance

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    config_manager = ConfigManager(args.config)

    if args.results_dir:
        config_manager.app_config.results_dir = args.results_dir
    if args.cores is not None:
        config_manager.app_config.sampling_cores = args.cores
    if args.posterior_predictive:
        config_manager.app_config.sampling_posterior_predictive = True

    config_manager.validate()
    return config_manager


def parse_arguments(argv=None):
    """
    Parse command line arguments.

    Sampling options left unset fall back to the configuration file and
    BAYESCOMPARE_* environment variables.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Bayesian model comparison by PSIS-LOO")

    # Inputs
    parser.add_argument("--data", type=str, required=True,
                        help="Path to the observations (CSV, Parquet or JSON)")
    parser.add_argument("--specs", type=str, required=True,
                        help="Path to a JSON list of model specs")

    # General options
    parser.add_argument("--config", type=str, help="Path to configuration file")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default=None, help="Log level")

    # Sampling options
    parser.add_argument("--draws", type=int, help="Number of draws per chain")
    parser.add_argument("--tune", type=int, help="Number of tuning steps per chain")
    parser.add_argument("--chains", type=int, help="Number of chains per model")
    parser.add_argument("--cores", type=int, help="Processes per model for its chains")
    parser.add_argument("--seed", type=int, help="Random seed shared by every fit")
    parser.add_argument("--target-accept", type=float, help="NUTS target acceptance rate")
    parser.add_argument("--posterior-predictive", action="store_true",
                        help="Also draw replicated data for predictive checks")

    # Runner options
    parser.add_argument("--max-workers", type=int, help="Models fitted concurrently")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for each fit")
    parser.add_argument("--backend", choices=["thread", "process"], help="Worker pool type")

    # Output options
    parser.add_argument("--save", action="store_true", help="Save results to the results directory")
    parser.add_argument("--save-traces", action="store_true", help="Also save traces as NetCDF")
    parser.add_argument("--results-dir", type=str, help="Directory to store results")
    parser.add_argument("--experiment-name", type=str, help="Subdirectory name for this run's results")

    return parser.parse_args(argv)


def setup_logging(log_level, log_file=None):
    """
    Set up logging based on the specified log level.

    Args:
        log_level: Log level to set up
        log_file: Optional file to log to as well
    """
    LoggingManager.setup_logging(log_level=log_level, log_file=log_file)


if __name__ == "__main__":
    sys.exit(main())
