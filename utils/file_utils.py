#!/usr/bin/env python3
"""
File utility functions for the comparison runner.

This module provides file and directory management utility functions.
"""

import os
import json
from typing import Dict, Any, Union
from pathlib import Path

from utils.logging_utils import logger
from utils.serialization import to_serializable


def ensure_dir_exists(directory: Union[str, Path]) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: Path to directory
    """
    if directory:
        os.makedirs(directory, exist_ok=True)
        logger.debug(f"Ensuring directory exists: {directory}")


def save_json(data: Dict[str, Any], filepath: Union[str, Path]) -> None:
    """
    Save dictionary to JSON file, converting numpy and pandas values.

    Args:
        data: Dictionary to save
        filepath: Path to save JSON file
    """
    ensure_dir_exists(os.path.dirname(str(filepath)))

    with open(filepath, 'w') as f:
        json.dump(to_serializable(data), f, indent=2)

    logger.debug(f"Saved JSON data to {filepath}")


def load_json(filepath: Union[str, Path]) -> Any:
    """
    Load JSON content from a file.

    Args:
        filepath: Path to JSON file

    Returns:
        Parsed JSON content

    Raises:
        FileNotFoundError: If the file does not exist
    """
    with open(filepath, 'r') as f:
        data = json.load(f)

    logger.debug(f"Loaded JSON data from {filepath}")
    return data


def get_file_extension(filepath: Union[str, Path]) -> str:
    """
    Get file extension from filepath.

    Args:
        filepath: Path to file

    Returns:
        File extension (without dot), lower case
    """
    return os.path.splitext(str(filepath))[1][1:].lower()
