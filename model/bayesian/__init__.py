"""
Bayesian model components for model comparison.

Components:
- model_builder.py: PyMC model graph for a ModelSpec (bayesian-specific)
- Sampling and diagnostics are imported from the parent module
"""

from model.bayesian.model_builder import BayesianModelBuilder

__all__ = [
    'BayesianModelBuilder',
]
