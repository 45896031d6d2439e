#!/usr/bin/env python3
"""
Model Runner System for Bayesian model comparison.

This orchestration module fits a set of candidate models to one dataset,
scores each fit by PSIS-LOO and hands back a report the caller can rank.

PURPOSE:
- Provide a single entry point (ModelRunner.run) for comparing candidate models
- Isolate failures so one bad spec never aborts the others
- Keep results independent of dispatch and completion order

KEY COMPONENTS:
- ModelRunner: validation, worker pool dispatch, join barrier, scoring
- ModelFitter (model.sampling): the fitting capability, PyMC by default
- loo_score (model.loo): PSIS-LOO for one log-likelihood matrix

EXECUTION FLOW:
1. Validate the dataset, the spec list and the sampling configuration
   (batch-level errors are raised before anything is dispatched)
2. Dispatch one fit per spec to a thread or process pool
3. Wait for every fit (join barrier), recording timeouts and failures
4. Score each successful fit that tracks log-likelihood
5. Return a RunReport in request order

ASSUMPTIONS:
- The fitter is safe to call concurrently (and picklable for the process backend)
- The dataset fits in memory and is shared read-only by every fit

EDGE CASES:
- The timeout counts from when a worker starts the fit, not from dispatch
- A fit that exceeds the timeout is abandoned, not interrupted; its worker
  finishes in the background and the result is discarded
- Pareto k above the threshold produces a warning, never a failure
- Specs that keep no log-likelihood end in SCORING_SKIPPED
"""
import os
import time
import warnings
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from data.dataset import Dataset
from model.bayesian.model_builder import BayesianModelBuilder
from model.constants import PARETO_K_THRESHOLD, TIMEOUT_POLL_INTERVAL
from model.exceptions import (
    ConfigurationError,
    DataValidationError,
    InvalidSpecError,
    SamplerError,
    ScoringError,
)
from model.loo import loo_score
from model.results import FitResult, RunReport, SpecOutcome, SpecState
from model.sampling import BayesianSampler, ModelFitter
from model.specs import ModelSpec, SamplingConfig
from utils.decorators import log_step, timed
from utils.logging_utils import LoggingManager, get_logger

logger = get_logger()


class ModelRunner:
    """Fits and scores candidate models, one outcome per spec."""

    def __init__(self, fitter: Optional[ModelFitter] = None, k_threshold: float = PARETO_K_THRESHOLD):
        """
        Initialize the model runner.

        Args:
            fitter: Fitting capability; defaults to BayesianSampler
            k_threshold: Pareto k above which LOO estimates are flagged
        """
        self.fitter = fitter if fitter is not None else BayesianSampler()
        self.k_threshold = k_threshold

    @timed("Comparison run")
    def run(self,
            dataset: Union[Dataset, pd.DataFrame],
            specs: Sequence[ModelSpec],
            sampling_config: Optional[SamplingConfig] = None) -> RunReport:
        """
        Fit every spec to the dataset and score the fits.

        Args:
            dataset: Observations (a DataFrame is wrapped in a Dataset)
            specs: Candidate models with unique names
            sampling_config: MCMC and parallelism settings (defaults apply if None)

        Returns:
            RunReport with one terminal SpecOutcome per spec, in request order

        Raises:
            DataValidationError: If the dataset is unusable
            InvalidSpecError: If the specs are empty, duplicated or do not fit the dataset
            ConfigurationError: If sampling_config is not a SamplingConfig
        """
        dataset = self._coerce_dataset(dataset)
        specs = self.validate(dataset, specs)
        config = sampling_config if sampling_config is not None else SamplingConfig()
        if not isinstance(config, SamplingConfig):
            raise ConfigurationError(f"sampling_config must be a SamplingConfig, got {type(config).__name__}")

        logger.info(f"Comparing {len(specs)} models on {dataset.n_obs} observations: "
                    f"{[spec.name for spec in specs]}")

        outcomes = {spec.name: SpecOutcome(spec) for spec in specs}
        self._fit_all(dataset, specs, config, outcomes)

        for spec in specs:
            if outcomes[spec.name].state == SpecState.FITTED:
                outcomes[spec.name] = self._score(outcomes[spec.name], dataset)

        report = RunReport([outcomes[spec.name] for spec in specs])
        LoggingManager.log_dict(logger, "Run outcome", {name: o.state.value for name, o in report.items()})
        return report

    @staticmethod
    def _coerce_dataset(dataset: Union[Dataset, pd.DataFrame]) -> Dataset:
        if isinstance(dataset, Dataset):
            return dataset
        if isinstance(dataset, pd.DataFrame):
            return Dataset(dataset)
        raise DataValidationError(f"Expected a Dataset or DataFrame, got {type(dataset).__name__}")

    @log_step("Validating model specs")
    def validate(self, dataset: Dataset, specs: Sequence[ModelSpec]) -> List[ModelSpec]:
        """
        Batch-level checks run before any fit is dispatched.

        Raises:
            InvalidSpecError: On an empty list, non-spec entries, duplicate
                names or a spec that does not fit the dataset
        """
        specs = list(specs) if specs is not None else []
        if not specs:
            raise InvalidSpecError("No model specs to compare")

        seen = set()
        for spec in specs:
            if not isinstance(spec, ModelSpec):
                raise InvalidSpecError(f"Expected ModelSpec, got {type(spec).__name__}", details=repr(spec))
            if spec.name in seen:
                raise InvalidSpecError(f"Duplicate model spec name '{spec.name}'")
            seen.add(spec.name)
            BayesianModelBuilder(spec).validate(dataset)

        return specs

    def _fit_all(self,
                 dataset: Dataset,
                 specs: List[ModelSpec],
                 config: SamplingConfig,
                 outcomes: Dict[str, SpecOutcome]) -> None:
        """
        Dispatch every fit, then wait for all of them (join barrier).

        Each fit's timeout counts from when a worker picks it up, so fits
        queued behind a busy pool are not charged for the wait.
        """
        executor_cls = ThreadPoolExecutor if config.backend == "thread" else ProcessPoolExecutor
        max_workers = min(config.max_workers or os.cpu_count() or 1, len(specs))
        logger.info(f"Dispatching {len(specs)} fits to a {config.backend} pool of {max_workers} workers")

        executor = executor_cls(max_workers=max_workers)
        abandoned = False
        try:
            pending: Dict[Future, ModelSpec] = {}
            for spec in specs:
                outcomes[spec.name] = outcomes[spec.name].advance(SpecState.FITTING)
                pending[executor.submit(self.fitter.fit, dataset, spec, config)] = spec

            started: Dict[Future, float] = {}
            poll = None if config.fit_timeout is None else min(TIMEOUT_POLL_INTERVAL, config.fit_timeout)
            while pending:
                now = time.monotonic()
                for future in pending:
                    if future not in started and (future.running() or future.done()):
                        started[future] = now

                done, _ = wait(list(pending), timeout=poll, return_when=FIRST_COMPLETED)
                for future in done:
                    spec = pending.pop(future)
                    outcomes[spec.name] = self._collect(outcomes[spec.name], future)

                if config.fit_timeout is None:
                    continue
                now = time.monotonic()
                expired = [f for f in pending if f in started and now - started[f] >= config.fit_timeout]
                for future in expired:
                    spec = pending.pop(future)
                    abandoned = True
                    message = f"Fit did not finish within {config.fit_timeout}s"
                    logger.warning(f"Spec '{spec.name}': {message}")
                    outcomes[spec.name] = outcomes[spec.name].advance(
                        SpecState.FIT_FAILED, error_kind="timeout", message=message)
        finally:
            # abandoned fits keep running in their workers; do not wait for them
            executor.shutdown(wait=not abandoned, cancel_futures=abandoned)

    @staticmethod
    def _collect(outcome: SpecOutcome, future: Future) -> SpecOutcome:
        """Move a FITTING outcome to FITTED or FIT_FAILED from its finished future."""
        try:
            fit = future.result()
        except Exception as e:
            kind = e.error_kind if isinstance(e, SamplerError) else "sampler"
            LoggingManager.log_error(logger, f"Fit of '{outcome.name}' failed", exception=e)
            return outcome.advance(SpecState.FIT_FAILED, error_kind=kind, message=str(e))

        if not isinstance(fit, FitResult):
            return outcome.advance(SpecState.FIT_FAILED, error_kind="sampler",
                                   message=f"Fitter returned {type(fit).__name__}, not FitResult")
        return outcome.advance(SpecState.FITTED, fit=fit)

    def _score(self, outcome: SpecOutcome, dataset: Dataset) -> SpecOutcome:
        """Move a FITTED outcome to SCORED or SCORING_SKIPPED."""
        spec, fit = outcome.spec, outcome.fit
        if not spec.log_likelihood:
            return outcome.advance(SpecState.SCORING_SKIPPED, error_kind="not_tracked",
                                   message="Spec does not keep pointwise log-likelihood")

        try:
            if not fit.has_log_likelihood:
                raise ScoringError("Fit has no log-likelihood matrix")
            if fit.log_likelihood.shape[1] != dataset.n_obs:
                raise ScoringError(
                    f"Log-likelihood covers {fit.log_likelihood.shape[1]} observations, dataset has {dataset.n_obs}")
            loo = loo_score(fit.log_likelihood, k_threshold=self.k_threshold)
        except ScoringError as e:
            LoggingManager.log_warning(logger, f"Scoring of '{spec.name}' skipped: {e}")
            return outcome.advance(SpecState.SCORING_SKIPPED, error_kind=e.error_kind, message=str(e))

        if loo.warning:
            message = (f"Estimated shape parameter of Pareto distribution is greater than {self.k_threshold} "
                       f"for {loo.n_bad_k} observations of '{spec.name}'; the LOO estimate may be unreliable")
            # _score <- run <- timed wrapper <- caller
            warnings.warn(message, UserWarning, stacklevel=4)
            LoggingManager.log_warning(logger, message, data={"observations": loo.bad_k_indices.tolist()})

        logger.info(f"Scored '{spec.name}': elpd_loo = {loo.elpd_loo:.2f} (se {loo.se:.2f}), "
                    f"p_loo = {loo.p_loo:.2f}")
        return outcome.advance(SpecState.SCORED, loo=loo)


def run_comparison(dataset: Union[Dataset, pd.DataFrame],
                   specs: Sequence[ModelSpec],
                   sampling_config: Optional[SamplingConfig] = None,
                   fitter: Optional[ModelFitter] = None) -> RunReport:
    """Convenience wrapper: ``ModelRunner(fitter).run(dataset, specs, sampling_config)``."""
    return ModelRunner(fitter=fitter).run(dataset, specs, sampling_config)
