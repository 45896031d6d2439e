#!/usr/bin/env python3
"""
Dataset container for model comparison runs.

A Dataset is an ordered, read-only table of observations. Every observation
shares the same set of variables (response, covariates and optional trial
counts); which column plays which role is decided by the model specs, not
by the dataset.

ASSUMPTIONS:
- All variables are numeric (binary groups are encoded as 0/1)
- The data fits in memory

EDGE CASES:
- Empty tables, missing values and non-numeric columns raise DataValidationError
- Records with differing key sets raise DataValidationError (schema mismatch)
"""
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from model.exceptions import DataValidationError


class Dataset:
    """
    Immutable table of observations.

    Parameters
    ----------
    frame : pd.DataFrame
        Observations as rows, variables as columns. A private copy is kept.
    name : str, optional
        Label used in logs and reports.
    """

    def __init__(self, frame: pd.DataFrame, name: Optional[str] = None):
        if not isinstance(frame, pd.DataFrame):
            raise DataValidationError(f"Expected a pandas DataFrame, got {type(frame).__name__}")
        if frame.empty or len(frame.index) == 0:
            raise DataValidationError("Dataset must contain at least one observation")

        frame = frame.reset_index(drop=True).copy()
        frame.columns = [str(c) for c in frame.columns]
        if len(set(frame.columns)) != len(frame.columns):
            raise DataValidationError("Dataset column names must be unique",
                                      details=list(frame.columns))

        non_numeric = [c for c in frame.columns if not pd.api.types.is_numeric_dtype(frame[c])]
        if non_numeric:
            raise DataValidationError("Dataset columns must be numeric", details=non_numeric)

        missing = frame.columns[frame.isna().any()].tolist()
        if missing:
            raise DataValidationError("Dataset contains missing values", details=missing)

        self._frame = frame
        self.name = name or "dataset"

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], name: Optional[str] = None) -> "Dataset":
        """
        Build a dataset from a sequence of observation mappings.

        Raises:
            DataValidationError: If the records do not share one schema
        """
        records = list(records)
        if not records:
            raise DataValidationError("Dataset must contain at least one observation")

        schema = set(records[0].keys())
        for position, record in enumerate(records[1:], start=1):
            if set(record.keys()) != schema:
                raise DataValidationError(
                    "All observations must share the same variables",
                    details={"observation": position,
                             "expected": sorted(schema),
                             "found": sorted(record.keys())},
                )
        return cls(pd.DataFrame.from_records(records, columns=list(records[0].keys())), name=name)

    @classmethod
    def from_columns(cls, columns: Mapping[str, Iterable[Any]], name: Optional[str] = None) -> "Dataset":
        """Build a dataset from a mapping of column name to values."""
        try:
            frame = pd.DataFrame({k: list(v) for k, v in columns.items()})
        except ValueError as e:
            raise DataValidationError(f"Columns have inconsistent lengths: {str(e)}")
        return cls(frame, name=name)

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(self._frame.columns)

    @property
    def n_obs(self) -> int:
        return len(self._frame.index)

    def __len__(self) -> int:
        return self.n_obs

    def __contains__(self, column: str) -> bool:
        return column in self._frame.columns

    def column(self, name: str) -> np.ndarray:
        """Return a read-only array of one variable."""
        if name not in self._frame.columns:
            raise KeyError(f"Column '{name}' not in dataset {self.name}")
        values = self._frame[name].to_numpy(copy=True)
        values.setflags(write=False)
        return values

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the underlying table."""
        return self._frame.copy()

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "n_obs": self.n_obs, "columns": list(self.columns)}

    def __repr__(self) -> str:
        return f"Dataset(name={self.name!r}, n_obs={self.n_obs}, columns={list(self.columns)})"
