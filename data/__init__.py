"""
Data package for Bayesian model comparison.

This package provides the Dataset container and loaders for observation
tables and model spec files.
"""

from data.dataset import Dataset
from data.data_loader import DatasetLoader, load_model_specs

__all__ = ['Dataset', 'DatasetLoader', 'load_model_specs']
