#!/usr/bin/env python3
"""
Serialization utilities for the comparison runner.

This module converts numpy, pandas and enum values into JSON-serializable
Python objects.
"""

import enum
import math
import numpy as np
import pandas as pd
from typing import Any

from utils.logging_utils import logger


def to_serializable(obj: Any) -> Any:
    """
    Convert object to JSON-serializable format.

    Non-finite floats become None.

    Args:
        obj: Object to convert

    Returns:
        JSON-serializable representation of object
    """
    if isinstance(obj, enum.Enum):
        return obj.value
    elif isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        value = float(obj)
        return value if math.isfinite(value) else None
    elif isinstance(obj, (np.ndarray, list, tuple)):
        return [to_serializable(x) for x in obj]
    elif isinstance(obj, pd.DataFrame):
        return {
            'columns': list(obj.columns),
            'index': [to_serializable(i) for i in obj.index],
            'data': to_serializable(obj.values),
        }
    elif isinstance(obj, pd.Series):
        return {
            'name': obj.name,
            'index': [to_serializable(i) for i in obj.index],
            'data': to_serializable(obj.values),
        }
    elif isinstance(obj, dict) or hasattr(obj, 'items'):
        return {str(k): to_serializable(v) for k, v in obj.items()}
    elif obj is None or isinstance(obj, (str, int)):
        return obj
    else:
        try:
            return str(obj)
        except Exception:
            logger.warning(f"Cannot serialize object of type {type(obj)}")
            return None
