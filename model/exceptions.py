#!/usr/bin/env python3
"""
Custom exceptions for the Bayesian model comparison runner.

This module provides a hierarchy of exception classes tailored to the
error scenarios of a comparison run. Batch-level errors (InvalidSpecError,
DataError, ConfigurationError) are raised to the caller before any fit is
dispatched; per-spec errors (SamplerError, ScoringError) are recorded in
the run report instead.
"""


class BayesCompareError(Exception):
    """Base exception class for all comparison runner errors."""
    def __init__(self, message, details=None):
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self):
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


# Data-related errors
class DataError(BayesCompareError):
    """Error related to dataset loading or validation."""
    pass


class DataFormatError(DataError):
    """Error related to an unreadable or unsupported data file."""
    pass


class DataValidationError(DataError):
    """Error related to dataset content (empty, missing values, schema mismatch)."""
    pass


# Model-related errors
class ModelError(BayesCompareError):
    """Base class for model-related errors."""
    pass


class InvalidSpecError(ModelError):
    """A model specification cannot be fitted to the dataset as written."""
    pass


class ModelBuildError(ModelError):
    """Error related to building a PyMC model graph."""
    pass


class SamplerError(ModelError):
    """Error related to MCMC sampling or non-convergence."""
    error_kind = "sampler"


class FitTimeoutError(SamplerError):
    """A fit did not finish within the configured timeout."""
    error_kind = "timeout"


class ScoringError(ModelError):
    """Error related to LOO scoring or model ranking."""
    error_kind = "scoring"


# Configuration-related errors
class ConfigurationError(BayesCompareError):
    """Error related to configuration."""
    pass


# Results-related errors
class ResultsError(BayesCompareError):
    """Error related to results handling."""
    pass
