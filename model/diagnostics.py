"""
Diagnostics module for fitted Bayesian models.

This module condenses an ArviZ InferenceData object into the sampler
health figures a comparison run reports: divergences, max-treedepth hits,
effective sample sizes and R-hat.
"""
from typing import List, Optional

import arviz as az
import numpy as np

from model.constants import DEFAULT_MAX_TREEDEPTH
from model.exceptions import SamplerError
from model.results import SamplerDiagnostics
from utils.logging_utils import logger

# Columns kept from the ArviZ posterior summary
SUMMARY_COLUMNS = ["mean", "sd", "ess_bulk", "ess_tail", "r_hat"]


class BayesianDiagnostics:
    """
    Computes sampler diagnostics for one fit.

    Responsibilities:
    - Counting divergent transitions and max-treedepth hits
    - Computing bulk/tail ESS and R-hat per scalar parameter
    - Judging convergence against an R-hat ceiling
    """

    def __init__(self, max_treedepth: int = DEFAULT_MAX_TREEDEPTH):
        """
        Initialize the diagnostics component.

        Args:
            max_treedepth: Tree depth limit the sampler ran with
        """
        self.max_treedepth = max_treedepth

    def compute(self, idata: "az.InferenceData", var_names: Optional[List[str]] = None) -> SamplerDiagnostics:
        """
        Compute diagnostics for the trace.

        Args:
            idata: ArviZ InferenceData with posterior and sample_stats groups
            var_names: Parameters to summarise (None: all posterior variables)

        Returns:
            SamplerDiagnostics for the fit

        Raises:
            SamplerError: If the trace lacks the groups diagnostics need
        """
        if not hasattr(idata, "posterior"):
            raise SamplerError("Trace has no posterior group")

        posterior = idata.posterior
        n_draws = int(posterior.sizes["chain"] * posterior.sizes["draw"])

        summary = az.summary(idata, var_names=var_names, kind="all", round_to="none")
        summary = summary[[c for c in SUMMARY_COLUMNS if c in summary.columns]]

        n_divergent, n_max_treedepth = 0, 0
        if hasattr(idata, "sample_stats"):
            stats = idata.sample_stats
            if "diverging" in stats:
                n_divergent = int(stats["diverging"].sum().item())
            if "reached_max_treedepth" in stats:
                n_max_treedepth = int(stats["reached_max_treedepth"].sum().item())
            elif "tree_depth" in stats:
                n_max_treedepth = int((stats["tree_depth"] >= self.max_treedepth).sum().item())

        diagnostics = SamplerDiagnostics(
            n_divergent=n_divergent,
            n_max_treedepth=n_max_treedepth,
            n_draws=n_draws,
            summary=summary,
        )

        logger.info(f"Computed diagnostics: max Rhat = {diagnostics.max_r_hat:.3f}, "
                    f"min ESS = {diagnostics.min_ess_bulk:.1f}, "
                    f"n_divergent = {n_divergent}, n_max_treedepth = {n_max_treedepth}")
        return diagnostics

    @staticmethod
    def assess_convergence(diagnostics: SamplerDiagnostics, max_rhat: float) -> bool:
        """
        Check that every R-hat is at or below ``max_rhat``.

        Returns:
            True if chains have converged, False otherwise
        """
        r_hat = np.array(list(diagnostics.r_hat.values()), dtype=float)
        converged = bool(np.all(np.isfinite(r_hat)) and np.all(r_hat <= max_rhat))
        if converged:
            logger.info("MCMC chains have converged successfully")
        else:
            logger.warning(f"MCMC chains may not have converged properly (max Rhat {diagnostics.max_r_hat:.3f})")
        return converged
