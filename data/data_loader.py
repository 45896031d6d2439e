#!/usr/bin/env python3
"""
Data Loader Module for model comparison runs.

This module reads observation tables and model spec files from disk.

PURPOSE:
- Standardize loading of observation tables across formats (CSV, Parquet, JSON)
- Resolve column naming differences before the data reaches the models
- Read candidate model specs from a JSON file

ASSUMPTIONS:
- Tables fit in memory
- Every column the models use is numeric (or can be dropped via ``columns``)

EDGE CASES:
- Missing files and unsupported extensions raise DataFormatError
- Requested columns absent from the file raise DataValidationError
- Rows with missing values are rejected unless ``drop_missing`` is set
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from data.dataset import Dataset
from model.exceptions import DataFormatError, DataValidationError, InvalidSpecError
from model.specs import ModelSpec
from utils.file_utils import get_file_extension
from utils.logging_utils import logger

SUPPORTED_FORMATS = ('csv', 'parquet', 'json')


class DatasetLoader:
    """
    Loads an observation table into a Dataset.

    Parameters
    ----------
    data_path : str or Path
        Path to the data file (CSV, Parquet or JSON records).
    column_mapping : dict, optional
        Mapping from actual column names to the names the model specs use.
    columns : sequence of str, optional
        Keep only these columns (after mapping).
    drop_missing : bool, optional
        Drop rows with missing values instead of rejecting the table.
    """

    def __init__(
        self,
        data_path: Union[str, Path],
        column_mapping: Optional[Dict[str, str]] = None,
        columns: Optional[Sequence[str]] = None,
        drop_missing: bool = False
    ):
        self.data_path = Path(data_path)
        self.column_mapping = dict(column_mapping or {})
        self.columns = list(columns) if columns is not None else None
        self.drop_missing = drop_missing

        if not self.data_path.exists():
            raise DataFormatError(f"Data file not found: {self.data_path}")

        if get_file_extension(self.data_path) not in SUPPORTED_FORMATS:
            raise DataFormatError(f"Unsupported file format: {self.data_path.suffix}",
                                  details=list(SUPPORTED_FORMATS))

        logger.info(f"Initialized DatasetLoader with data path: {self.data_path}")

    def read_frame(self) -> pd.DataFrame:
        """
        Read the raw table.

        Raises:
            DataFormatError: If the file cannot be parsed
        """
        file_ext = get_file_extension(self.data_path)
        try:
            if file_ext == 'csv':
                return pd.read_csv(self.data_path)
            if file_ext == 'parquet':
                return pd.read_parquet(self.data_path)
            return pd.read_json(self.data_path, orient='records')
        except (ValueError, OSError, ImportError) as e:
            raise DataFormatError(f"Could not read {self.data_path}: {str(e)}") from e

    def _apply_column_mapping(self, data: pd.DataFrame) -> pd.DataFrame:
        rename_dict = {k: v for k, v in self.column_mapping.items() if k in data.columns}
        missing = sorted(set(self.column_mapping) - set(rename_dict))
        if missing:
            logger.warning(f"Mapped columns not found in data: {missing}")
        if rename_dict:
            logger.info(f"Renaming columns: {rename_dict}")
            return data.rename(columns=rename_dict)
        return data

    def load(self) -> Dataset:
        """
        Load the file into a Dataset.

        Returns:
            Dataset named after the file stem

        Raises:
            DataFormatError: If the file cannot be read
            DataValidationError: If the table is empty, lacks requested
                columns or holds non-numeric/missing values
        """
        data = self._apply_column_mapping(self.read_frame())

        if self.columns is not None:
            missing_cols = [c for c in self.columns if c not in data.columns]
            if missing_cols:
                raise DataValidationError(f"Missing required columns: {missing_cols}",
                                          details={"available": list(data.columns)})
            data = data[self.columns]

        if self.drop_missing:
            n_before = len(data)
            data = data.dropna()
            if len(data) < n_before:
                logger.warning(f"Dropped {n_before - len(data)} rows with missing values")

        dataset = Dataset(data, name=self.data_path.stem)
        logger.info(f"Loaded {dataset.n_obs} observations with columns {list(dataset.columns)}")
        return dataset


def load_model_specs(path: Union[str, Path]) -> List[ModelSpec]:
    """
    Read model specs from a JSON file.

    The file holds either a list of spec objects or ``{"models": [...]}``;
    each object has ``name``, ``formula`` and optionally ``family``,
    ``priors``, ``trials`` and ``log_likelihood``.

    Raises:
        DataFormatError: If the file is missing or not valid JSON
        InvalidSpecError: If an entry is not a valid spec
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            content: Any = json.load(f)
    except FileNotFoundError:
        raise DataFormatError(f"Spec file not found: {path}")
    except json.JSONDecodeError as e:
        raise DataFormatError(f"Spec file {path} is not valid JSON: {str(e)}") from e

    if isinstance(content, dict):
        content = content.get("models")
    if not isinstance(content, list):
        raise InvalidSpecError(f"Spec file {path} must hold a list of model specs")

    specs = []
    for position, entry in enumerate(content):
        if not isinstance(entry, dict):
            raise InvalidSpecError(f"Entry {position} of {path} is not an object", details=repr(entry))
        specs.append(ModelSpec.from_dict(entry))

    logger.info(f"Loaded {len(specs)} model specs from {path}: {[s.name for s in specs]}")
    return specs
