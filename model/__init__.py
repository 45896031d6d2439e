"""
Model package for Bayesian model comparison.

This package provides model specifications, PyMC model building and
sampling, PSIS-LOO scoring and the comparison runner.

The sampler and runner live in model.sampling and model.model_runner and
are imported from there; they depend on PyMC and on the data package.
"""

from model.exceptions import (
    BayesCompareError, DataError, ModelError, InvalidSpecError,
    ModelBuildError, SamplerError, FitTimeoutError, ScoringError,
)
from model.specs import Prior, ModelSpec, SamplingConfig
from model.results import FitResult, LooScore, SpecOutcome, SpecState, RunReport
from model.loo import loo_score
from model.comparison import compare, pairwise_difference

# Re-export main classes for easier import by consumers
__all__ = [
    'Prior', 'ModelSpec', 'SamplingConfig',
    'FitResult', 'LooScore', 'SpecOutcome', 'SpecState', 'RunReport',
    'loo_score', 'compare', 'pairwise_difference',
    'BayesCompareError', 'DataError', 'ModelError', 'InvalidSpecError',
    'ModelBuildError', 'SamplerError', 'FitTimeoutError', 'ScoringError',
]
