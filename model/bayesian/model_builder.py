"""
Bayesian Model Builder for candidate model specs.

This module turns a ModelSpec and a Dataset into a PyMC model graph: a linear
predictor over the formula's covariates, the spec's priors (or scaled
library defaults), and the likelihood family's observation model.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np
import pymc as pm

from data.dataset import Dataset
from model.constants import (
    DEFAULT_COEFFICIENT_PRIOR,
    DEFAULT_INTERCEPT_PRIOR,
    DEFAULT_NU_PRIOR,
    DEFAULT_PROBABILITY_PRIOR,
    DEFAULT_SIGMA_PRIOR,
    INTERCEPT,
    OBSERVED_VARIABLE,
    PROBABILITY_PARAM,
)
from model.exceptions import InvalidSpecError, ModelBuildError
from model.specs import ModelSpec, Prior

logger = logging.getLogger(__name__)

# PyMC constructor per prior distribution name
_PYMC_DISTRIBUTIONS = {
    "normal": pm.Normal,
    "student_t": pm.StudentT,
    "cauchy": pm.Cauchy,
    "uniform": pm.Uniform,
    "beta": pm.Beta,
    "half_normal": pm.HalfNormal,
    "half_cauchy": pm.HalfCauchy,
    "half_student_t": pm.HalfStudentT,
    "exponential": pm.Exponential,
    "gamma": pm.Gamma,
}


def _is_integer_valued(values: np.ndarray) -> bool:
    return bool(np.all(np.equal(np.mod(values, 1), 0)))


class BayesianModelBuilder:
    """
    Builds PyMC model graphs for one model spec.

    ASSUMPTIONS:
    - Covariates enter the linear predictor additively
    - Bernoulli/Binomial models use a logit link, Poisson a log link,
      Gaussian/Student-t an identity link
    - Intercept-only Bernoulli/Binomial models sample the success
      probability ``theta`` directly

    MODELING CHOICES (unspecified priors):
    - Gaussian/Student-t: priors scaled by the response's standard
      deviation (intercept centred on the response mean)
    - Other families: weakly informative priors on the link scale
    - theta: Beta(1, 1)
    """

    def __init__(self, spec: ModelSpec):
        """
        Initialize the model builder.

        Args:
            spec: Model specification to build
        """
        self.spec = spec

    def validate(self, dataset: Dataset) -> None:
        """
        Check that the dataset can be modelled as the spec describes.

        Raises:
            InvalidSpecError: If a referenced column is missing or the
                response does not fit the likelihood family
        """
        spec = self.spec
        missing = [c for c in spec.required_columns if c not in dataset]
        if missing:
            raise InvalidSpecError(
                f"Spec '{spec.name}' references variables absent from the dataset",
                details={"missing": missing, "available": list(dataset.columns)},
            )

        y = dataset.column(spec.response)
        if spec.family == "bernoulli" and not np.all(np.isin(y, (0, 1))):
            raise InvalidSpecError(f"Spec '{spec.name}': bernoulli response '{spec.response}' must be 0/1")

        if spec.family == "binomial":
            trials = dataset.column(spec.trials)
            if not (_is_integer_valued(y) and _is_integer_valued(trials)):
                raise InvalidSpecError(f"Spec '{spec.name}': binomial successes and trials must be integers")
            if np.any(y < 0) or np.any(trials < 1) or np.any(y > trials):
                raise InvalidSpecError(
                    f"Spec '{spec.name}': binomial data needs 0 <= {spec.response} <= {spec.trials}, {spec.trials} >= 1"
                )

        if spec.family == "poisson" and (np.any(y < 0) or not _is_integer_valued(y)):
            raise InvalidSpecError(f"Spec '{spec.name}': poisson response must be non-negative integers")

    def default_prior(self, parameter: str, dataset: Dataset) -> Prior:
        """Library default for a parameter the spec leaves unspecified."""
        spec = self.spec
        if parameter == PROBABILITY_PARAM:
            return Prior.from_dict(DEFAULT_PROBABILITY_PRIOR)
        if parameter == "nu":
            return Prior.from_dict(DEFAULT_NU_PRIOR)

        if spec.family in ("gaussian", "student_t"):
            y = dataset.column(spec.response)
            scale = float(np.std(y)) or 1.0
            if parameter == "sigma":
                return Prior.of("half_student_t", nu=3.0, sigma=2.5 * scale)
            if parameter == INTERCEPT:
                return Prior.of("normal", mu=float(np.mean(y)), sigma=2.5 * scale)
            x_scale = float(np.std(dataset.column(parameter))) or 1.0
            return Prior.of("normal", mu=0.0, sigma=2.5 * scale / x_scale)

        if parameter == "sigma":
            return Prior.from_dict(DEFAULT_SIGMA_PRIOR)
        if parameter == INTERCEPT:
            return Prior.from_dict(DEFAULT_INTERCEPT_PRIOR)
        return Prior.from_dict(DEFAULT_COEFFICIENT_PRIOR)

    def resolved_priors(self, dataset: Dataset) -> Dict[str, Prior]:
        """Prior actually used for every parameter, spec first then defaults."""
        return {
            name: self.spec.prior_for(name) or self.default_prior(name, dataset)
            for name in self.spec.parameter_names
        }

    def build_model(self, dataset: Dataset) -> pm.Model:
        """
        Build the PyMC model for the spec.

        Args:
            dataset: Observations to condition on

        Returns:
            PyMC model whose observed variable is OBSERVED_VARIABLE, with
            one entry per dataset row along the ``obs_id`` dimension

        Raises:
            InvalidSpecError: If the spec does not fit the dataset
            ModelBuildError: If PyMC rejects the model graph
        """
        self.validate(dataset)
        spec = self.spec
        priors = self.resolved_priors(dataset)
        y = dataset.column(spec.response)

        logger.info(f"Building {spec.family} model '{spec.name}' ({spec.formula}) "
                    f"with {dataset.n_obs} observations; priors: "
                    + ", ".join(f"{k}~{v}" for k, v in priors.items()))

        try:
            with pm.Model(coords={"obs_id": np.arange(dataset.n_obs)}) as model:
                rvs = {name: self._prior_rv(name, prior) for name, prior in priors.items()}
                self._likelihood(rvs, dataset, y)
        except (ValueError, TypeError) as e:
            raise ModelBuildError(f"Could not build model '{spec.name}': {str(e)}") from e

        return model

    @staticmethod
    def _prior_rv(name: str, prior: Prior) -> Any:
        return _PYMC_DISTRIBUTIONS[prior.distribution](name, **prior.kwargs)

    def _linear_predictor(self, rvs: Dict[str, Any], dataset: Dataset) -> Any:
        eta = rvs[INTERCEPT] if INTERCEPT in rvs else 0.0
        for covariate in self.spec.covariates:
            eta = eta + rvs[covariate] * dataset.column(covariate).astype(float)
        if not self.spec.covariates:
            # intercept-only models still need one value per observation
            eta = eta * np.ones(dataset.n_obs)
        return eta

    def _likelihood(self, rvs: Dict[str, Any], dataset: Dataset, y: np.ndarray) -> Optional[Any]:
        spec = self.spec
        family = spec.family

        if spec.uses_probability_parameter:
            p = rvs[PROBABILITY_PARAM] * np.ones(dataset.n_obs)
            if family == "bernoulli":
                return pm.Bernoulli(OBSERVED_VARIABLE, p=p, observed=y.astype(int), dims="obs_id")
            trials = dataset.column(spec.trials).astype(int)
            return pm.Binomial(OBSERVED_VARIABLE, n=trials, p=p, observed=y.astype(int), dims="obs_id")

        eta = self._linear_predictor(rvs, dataset)
        if family == "bernoulli":
            return pm.Bernoulli(OBSERVED_VARIABLE, logit_p=eta, observed=y.astype(int), dims="obs_id")
        if family == "binomial":
            trials = dataset.column(spec.trials).astype(int)
            return pm.Binomial(OBSERVED_VARIABLE, n=trials, logit_p=eta, observed=y.astype(int), dims="obs_id")
        if family == "poisson":
            return pm.Poisson(OBSERVED_VARIABLE, mu=pm.math.exp(eta), observed=y.astype(int), dims="obs_id")
        if family == "gaussian":
            return pm.Normal(OBSERVED_VARIABLE, mu=eta, sigma=rvs["sigma"], observed=y, dims="obs_id")
        if family == "student_t":
            return pm.StudentT(OBSERVED_VARIABLE, nu=rvs["nu"], mu=eta, sigma=rvs["sigma"],
                               observed=y, dims="obs_id")
        raise ModelBuildError(f"No observation model for family '{family}'")
