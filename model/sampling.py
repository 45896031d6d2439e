"""
Bayesian model sampling component.

This module provides the fitting seam of a comparison run: a ModelFitter
turns (dataset, spec, sampling config) into a FitResult. BayesianSampler is
the PyMC implementation; tests and alternative backends substitute their
own fitter.
"""
import time
from abc import ABC, abstractmethod
from typing import Dict

import arviz as az
import numpy as np
import pymc as pm

from data.dataset import Dataset
from model.bayesian.model_builder import BayesianModelBuilder
from model.constants import OBSERVED_VARIABLE
from model.diagnostics import BayesianDiagnostics
from model.exceptions import BayesCompareError, SamplerError
from model.results import FitResult
from model.specs import ModelSpec, SamplingConfig
from utils.logging_utils import logger, log_step


class ModelFitter(ABC):
    """Fits one model spec to a dataset."""

    @abstractmethod
    def fit(self, dataset: Dataset, spec: ModelSpec, config: SamplingConfig) -> FitResult:
        """
        Draw posterior samples for ``spec``.

        Raises:
            SamplerError: If sampling fails or does not converge
        """


def _flatten_chains(values: np.ndarray) -> np.ndarray:
    """(chain, draw, ...) -> (chain * draw, ...), chains concatenated in order."""
    return values.reshape((values.shape[0] * values.shape[1],) + values.shape[2:])


class BayesianSampler(ModelFitter):
    """
    Handles MCMC sampling for candidate models with PyMC's NUTS sampler.

    This component is responsible for:
    - Building the PyMC model for a spec
    - Running NUTS with the run's sampling configuration
    - Computing pointwise log-likelihood and replicated data on request
    - Packaging draws and diagnostics into a FitResult
    """

    @log_step("Running MCMC sampling")
    def fit(self, dataset: Dataset, spec: ModelSpec, config: SamplingConfig) -> FitResult:
        """
        Fit ``spec`` to ``dataset``.

        Args:
            dataset: Observations to condition on
            spec: Model to fit
            config: MCMC settings; the same seed always yields the same draws

        Returns:
            FitResult with draws, diagnostics and (when tracked) the
            pointwise log-likelihood

        Raises:
            SamplerError: If sampling fails or R-hat exceeds config.max_rhat
        """
        start = time.perf_counter()
        try:
            model = BayesianModelBuilder(spec).build_model(dataset)
            idata = self.sample(model, spec, config)

            log_likelihood = None
            if spec.log_likelihood:
                log_likelihood = self.pointwise_log_likelihood(model, idata)

            posterior_predictive = None
            if config.posterior_predictive:
                posterior_predictive = self.replicate(model, idata, config)

            diagnostics = BayesianDiagnostics(config.max_treedepth).compute(idata, var_names=list(spec.parameter_names))
        except SamplerError:
            raise
        except BayesCompareError as e:
            raise SamplerError(f"Could not fit '{spec.name}': {e}") from e
        except (ValueError, RuntimeError, TypeError, FloatingPointError) as e:
            raise SamplerError(f"Sampling failed for '{spec.name}': {str(e)}") from e

        if config.max_rhat is not None and not BayesianDiagnostics.assess_convergence(diagnostics, config.max_rhat):
            raise SamplerError(
                f"Fit '{spec.name}' did not converge: max R-hat {diagnostics.max_r_hat:.3f} > {config.max_rhat}",
                details=diagnostics.r_hat,
            )

        elapsed = time.perf_counter() - start
        logger.info(f"Fitted '{spec.name}' in {elapsed:.1f}s")
        return FitResult(
            spec_name=spec.name,
            draws=self.extract_draws(idata, spec),
            diagnostics=diagnostics,
            log_likelihood=log_likelihood,
            posterior_predictive=posterior_predictive,
            inference_data=idata,
            sampling_config=config,
            elapsed=elapsed,
            response=spec.response,
        )

    @staticmethod
    def sample(model: pm.Model, spec: ModelSpec, config: SamplingConfig) -> "az.InferenceData":
        """Run NUTS on ``model`` with the settings in ``config``."""
        logger.info(f"Starting MCMC sampling for '{spec.name}' with parameters: draws={config.draws}, "
                    f"tune={config.tune}, chains={config.chains}, target_accept={config.target_accept}, "
                    f"max_treedepth={config.max_treedepth}, seed={config.random_seed}")
        with model:
            return pm.sample(
                draws=config.draws,
                tune=config.tune,
                chains=config.chains,
                cores=config.cores,
                random_seed=config.random_seed,
                nuts={"target_accept": config.target_accept, "max_treedepth": config.max_treedepth},
                progressbar=config.progressbar,
                return_inferencedata=True,
            )

    @staticmethod
    def pointwise_log_likelihood(model: pm.Model, idata: "az.InferenceData") -> np.ndarray:
        """Log-likelihood of each observation under each draw, shape (S, n)."""
        pm.compute_log_likelihood(idata, var_names=[OBSERVED_VARIABLE], model=model, progressbar=False)
        return _flatten_chains(idata.log_likelihood[OBSERVED_VARIABLE].values)

    @staticmethod
    def replicate(model: pm.Model, idata: "az.InferenceData", config: SamplingConfig) -> np.ndarray:
        """Replicated data sets, one per draw, shape (S, n)."""
        pm.sample_posterior_predictive(
            idata,
            model=model,
            random_seed=config.random_seed,
            progressbar=False,
            extend_inferencedata=True,
        )
        return _flatten_chains(idata.posterior_predictive[OBSERVED_VARIABLE].values)

    @staticmethod
    def extract_draws(idata: "az.InferenceData", spec: ModelSpec) -> Dict[str, np.ndarray]:
        """Posterior draws of each model parameter, chains concatenated."""
        posterior = idata.posterior
        missing = [name for name in spec.parameter_names if name not in posterior.data_vars]
        if missing:
            raise SamplerError(f"Missing variables in trace for '{spec.name}'", details=missing)
        return {name: _flatten_chains(posterior[name].values) for name in spec.parameter_names}
