#!/usr/bin/env python3
"""
Results Manager for comparison runs.

This module provides functionality for saving and loading the outputs of a
run: per-spec outcomes, the comparison table, posterior summaries and,
optionally, the raw InferenceData traces.
"""

import os
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from model.exceptions import ResultsError, ScoringError
from model.results import RunReport
from utils.decorators import log_errors
from utils.file_utils import ensure_dir_exists, load_json, save_json
from utils.logging_utils import get_logger

# Get logger for this module
logger = get_logger()


def _safe_name(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in name)


class ResultsManager:
    """
    Manager for run results.

    Attributes:
        results_dir (str): Directory for this experiment's files
        metadata (Dict[str, Any]): Index of the files written
    """

    def __init__(self, results_dir: str, experiment_name: Optional[str] = None):
        """
        Initialize the ResultsManager.

        Args:
            results_dir: Base directory for storing results
            experiment_name: Name of the experiment (creates a subdirectory)
        """
        if experiment_name is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            experiment_name = f"experiment_{timestamp}"

        self.results_dir = os.path.join(str(results_dir), experiment_name)
        ensure_dir_exists(self.results_dir)

        self.metadata = {
            "experiment_name": experiment_name,
            "timestamp": datetime.now().isoformat(),
            "results_files": {},
        }

        logger.info(f"Initialized results manager for experiment '{experiment_name}'")
        logger.debug(f"Results directory: {self.results_dir}")

    def _record(self, name: str, filename: str, file_type: str) -> None:
        self.metadata["results_files"][name] = {
            "type": file_type,
            "path": os.path.relpath(filename, self.results_dir),
            "timestamp": datetime.now().isoformat(),
        }

    @log_errors(msg="Error saving run report", reraise=True)
    def save_report(self, report: RunReport, save_traces: bool = False) -> Dict[str, str]:
        """
        Save a run report.

        Writes ``outcomes.json`` (state, error, diagnostics and LOO summary
        per spec), ``comparison.csv`` when at least two specs were scored,
        and ``summary_<spec>.csv`` per fitted spec.

        Args:
            report: Report returned by ModelRunner.run
            save_traces: Also write each fit's InferenceData as NetCDF

        Returns:
            Mapping of file label to path
        """
        written = {}
        outcomes = {name: outcome.to_dict() for name, outcome in report.items()}
        written["outcomes"] = self.save_dict(outcomes, "outcomes")

        if len(report.scores) >= 2:
            written["comparison"] = self.save_dataframe(report.compare(), "comparison", index=True)
        else:
            logger.info("Fewer than two scored models; no comparison table written")

        for name, fit in report.fits.items():
            label = f"summary_{_safe_name(name)}"
            written[label] = self.save_dataframe(fit.diagnostics.summary, label, index=True)
            if save_traces and fit.inference_data is not None:
                written[f"trace_{name}"] = self.save_inference_data(
                    fit.inference_data, f"trace_{_safe_name(name)}", subdirectory="traces")

        written["metadata"] = self.save_metadata()
        return written

    def save_dataframe(self, df: pd.DataFrame, name: str, index: bool = False) -> str:
        """
        Save a DataFrame to CSV.

        Args:
            df: DataFrame to save
            name: Name for the file (without extension)
            index: Whether to write the index

        Returns:
            Path to the saved file
        """
        filename = os.path.join(self.results_dir, f"{name}.csv")
        df.to_csv(filename, index=index)
        self._record(name, filename, "csv")
        logger.info(f"Saved DataFrame '{name}' to {filename}")
        return filename

    def save_dict(self, data: Dict[str, Any], name: str) -> str:
        """
        Save a dictionary to JSON.

        Returns:
            Path to the saved file
        """
        filename = os.path.join(self.results_dir, f"{name}.json")
        save_json(data, filename)
        self._record(name, filename, "json")
        logger.info(f"Saved dictionary '{name}' to {filename}")
        return filename

    def save_inference_data(self, idata: Any, name: str, subdirectory: Optional[str] = None) -> str:
        """
        Save an ArviZ InferenceData object as NetCDF.

        Returns:
            Path to the saved file
        """
        directory = self.results_dir
        if subdirectory:
            directory = os.path.join(self.results_dir, subdirectory)
            ensure_dir_exists(directory)
        filename = os.path.join(directory, f"{name}.nc")

        idata.to_netcdf(filename)
        self._record(name, filename, "inference_data")
        logger.info(f"Saved InferenceData '{name}' to {filename}")
        return filename

    def save_metadata(self) -> str:
        """
        Save metadata to JSON file.

        Returns:
            Path to the saved file
        """
        filename = os.path.join(self.results_dir, "metadata.json")
        save_json(self.metadata, filename)
        logger.info(f"Saved experiment metadata to {filename}")
        return filename

    def load_dataframe(self, name: str, index_col: Optional[int] = None) -> pd.DataFrame:
        """
        Load a CSV written by save_dataframe.

        Raises:
            ResultsError: If the file does not exist
        """
        filename = os.path.join(self.results_dir, f"{name}.csv")
        if not os.path.exists(filename):
            raise ResultsError(f"No saved table '{name}' in {self.results_dir}")
        return pd.read_csv(filename, index_col=index_col)

    def load_dict(self, name: str) -> Dict[str, Any]:
        """
        Load a JSON file written by save_dict.

        Raises:
            ResultsError: If the file does not exist
        """
        filename = os.path.join(self.results_dir, f"{name}.json")
        try:
            return load_json(filename)
        except FileNotFoundError:
            raise ResultsError(f"No saved dictionary '{name}' in {self.results_dir}")

    def list_results(self) -> List[str]:
        """Names of the files recorded so far."""
        return sorted(self.metadata["results_files"])


def save_results(report: RunReport, results_dir: str, experiment_name: Optional[str] = None) -> ResultsManager:
    """
    Save a report in a fresh ResultsManager.

    Returns:
        The ResultsManager holding the saved files
    """
    manager = ResultsManager(results_dir, experiment_name=experiment_name)
    try:
        manager.save_report(report)
    except ScoringError as e:
        raise ResultsError(f"Could not build the comparison table: {str(e)}") from e
    return manager
