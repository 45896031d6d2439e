"""
Utility package for Bayesian model comparison.

This package provides logging, decorators, file helpers and results
persistence.
"""

from utils.logging_utils import logger, LoggingManager
from utils.file_utils import ensure_dir_exists
from utils.decorators import log_step, timed, log_errors

__all__ = [
    'logger', 'LoggingManager', 'ensure_dir_exists',
    'log_step', 'timed', 'log_errors'
]
