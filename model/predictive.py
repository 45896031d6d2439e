"""
Posterior predictive checks.

A test statistic T is computed on the observed response and on every
replicated data set drawn from the posterior predictive distribution. The
posterior predictive p-value P(T(y_rep) >= T(y)) near 0 or 1 indicates the
model fails to reproduce that aspect of the data.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import numpy as np

from data.dataset import Dataset
from model.exceptions import ScoringError
from model.results import FitResult
from utils.logging_utils import logger

Statistic = Callable[[np.ndarray], float]


@dataclass(frozen=True, eq=False)
class PredictiveCheck:
    """Outcome of one posterior predictive check."""
    statistic: str
    observed: float
    replicated: np.ndarray = field(repr=False)
    p_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statistic": self.statistic,
            "observed": self.observed,
            "replicated_mean": float(np.mean(self.replicated)),
            "p_value": self.p_value,
        }


def posterior_predictive_check(fit: FitResult,
                               dataset: Dataset,
                               statistic: Statistic = np.mean,
                               response: Optional[str] = None) -> PredictiveCheck:
    """
    Compare a statistic of the observed data with its replicated distribution.

    Args:
        fit: Fit drawn with ``SamplingConfig(posterior_predictive=True)``
        dataset: The dataset the fit was conditioned on
        statistic: Function of a response vector returning a scalar
        response: Response column (defaults to the fit's response)

    Returns:
        PredictiveCheck with the observed and replicated statistics and
        the p-value P(T(y_rep) >= T(y))

    Raises:
        ScoringError: If the fit has no replicated data or the shapes disagree
    """
    if fit.posterior_predictive is None:
        raise ScoringError(f"Fit '{fit.spec_name}' has no posterior predictive draws; "
                           f"sample with posterior_predictive=True")

    column = response or fit.response
    if column is None:
        raise ScoringError(f"Fit '{fit.spec_name}' does not record its response column")
    y = dataset.column(column)

    replicated_data = fit.posterior_predictive
    if replicated_data.shape[1] != len(y):
        raise ScoringError(
            f"Replicated data of '{fit.spec_name}' covers {replicated_data.shape[1]} observations, "
            f"dataset has {len(y)}"
        )

    observed = float(statistic(y))
    replicated = np.array([statistic(row) for row in replicated_data], dtype=float)
    p_value = float(np.mean(replicated >= observed))

    name = getattr(statistic, "__name__", repr(statistic))
    logger.info(f"Posterior predictive check for '{fit.spec_name}': T={name}, "
                f"observed={observed:.4g}, p={p_value:.3f}")
    return PredictiveCheck(statistic=name, observed=observed, replicated=replicated, p_value=p_value)
