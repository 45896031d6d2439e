"""
Constants for the Bayesian model comparison runner.

This module centralizes the constants and default configuration values used
throughout the codebase.
"""
from typing import Dict, Any

# =======================================================
# MCMC sampling defaults
# =======================================================

DEFAULT_DRAWS = 1000
DEFAULT_TUNE = 1000
DEFAULT_CHAINS = 4
DEFAULT_TARGET_ACCEPT = 0.8
DEFAULT_MAX_TREEDEPTH = 10

# =======================================================
# PSIS-LOO
# =======================================================

# Observations whose Pareto shape estimate exceeds this are flagged unreliable
PARETO_K_THRESHOLD = 0.7

# =======================================================
# Model vocabulary
# =======================================================

INTERCEPT = "Intercept"
# Success probability of an intercept-only Bernoulli/Binomial model
PROBABILITY_PARAM = "theta"
OBSERVED_VARIABLE = "y_obs"

LIKELIHOOD_FAMILIES = ("bernoulli", "binomial", "gaussian", "student_t", "poisson")
BINARY_FAMILIES = ("bernoulli", "binomial")

# Hyperparameter names accepted for each prior distribution
PRIOR_HYPERPARAMETERS: Dict[str, tuple] = {
    "normal": ("mu", "sigma"),
    "student_t": ("nu", "mu", "sigma"),
    "cauchy": ("alpha", "beta"),
    "uniform": ("lower", "upper"),
    "beta": ("alpha", "beta"),
    "half_normal": ("sigma",),
    "half_cauchy": ("beta",),
    "half_student_t": ("nu", "sigma"),
    "exponential": ("lam",),
    "gamma": ("alpha", "beta"),
}

# Priors supported on the positive reals only
POSITIVE_PRIORS = ("half_normal", "half_cauchy", "half_student_t", "exponential", "gamma")

# Library defaults used when a spec leaves a prior unspecified
DEFAULT_COEFFICIENT_PRIOR: Dict[str, Any] = {"distribution": "normal", "mu": 0.0, "sigma": 2.5}
DEFAULT_INTERCEPT_PRIOR: Dict[str, Any] = {"distribution": "normal", "mu": 0.0, "sigma": 10.0}
DEFAULT_PROBABILITY_PRIOR: Dict[str, Any] = {"distribution": "beta", "alpha": 1.0, "beta": 1.0}
DEFAULT_SIGMA_PRIOR: Dict[str, Any] = {"distribution": "half_student_t", "nu": 3.0, "sigma": 2.5}
DEFAULT_NU_PRIOR: Dict[str, Any] = {"distribution": "gamma", "alpha": 2.0, "beta": 0.1}

# Auxiliary (non-coefficient) parameters per likelihood family
FAMILY_AUXILIARY_PARAMS: Dict[str, tuple] = {
    "bernoulli": (),
    "binomial": (),
    "poisson": (),
    "gaussian": ("sigma",),
    "student_t": ("sigma", "nu"),
}

# =======================================================
# Runner
# =======================================================

RUNNER_BACKENDS = ("thread", "process")
# Seconds between checks for fits that started or ran past their timeout
TIMEOUT_POLL_INTERVAL = 0.05
