"""
Bayesian Model Comparison Runner

This package fits several candidate Bayesian models to one dataset and
ranks them by estimated out-of-sample predictive performance (PSIS-LOO).

Main components:
- model: Model specs, PyMC sampling, LOO scoring and the runner
- data: Dataset container and loaders
- config: Configuration management
- utils: Utility functions for logging, timing, results persistence
"""

__version__ = '0.1.0'

from model.model_runner import ModelRunner
from model.specs import ModelSpec, Prior, SamplingConfig
from data.dataset import Dataset
from data.data_loader import DatasetLoader
from config.config_manager import ConfigManager

__all__ = [
    'ModelRunner',
    'ModelSpec',
    'Prior',
    'SamplingConfig',
    'Dataset',
    'DatasetLoader',
    'ConfigManager',
]
