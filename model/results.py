"""
Result values produced by a comparison run.

FitResult and LooScore are produced once per spec and never mutated; a
re-fit yields a new FitResult. SpecOutcome tracks a spec through the run's
state machine:

    PENDING -> FITTING -> {FITTED, FIT_FAILED}
    FITTED -> {SCORED, SCORING_SKIPPED}

FIT_FAILED, SCORED and SCORING_SKIPPED are terminal.
"""
import dataclasses
import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from model.specs import ModelSpec, SamplingConfig


def _read_only(values: Any) -> np.ndarray:
    array = np.array(values, dtype=float, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class SamplerDiagnostics:
    """
    Sampler health for one fit.

    ``summary`` is the ArviZ posterior summary (one row per scalar parameter)
    with at least the ``ess_bulk``, ``ess_tail`` and ``r_hat`` columns.
    """
    n_divergent: int
    n_max_treedepth: int
    n_draws: int
    summary: pd.DataFrame = field(repr=False, compare=False)

    def _column(self, name: str) -> Dict[str, float]:
        if name not in self.summary.columns:
            return {}
        return {str(k): float(v) for k, v in self.summary[name].items()}

    @property
    def ess_bulk(self) -> Dict[str, float]:
        return self._column("ess_bulk")

    @property
    def ess_tail(self) -> Dict[str, float]:
        return self._column("ess_tail")

    @property
    def r_hat(self) -> Dict[str, float]:
        return self._column("r_hat")

    @property
    def max_r_hat(self) -> float:
        values = [v for v in self.r_hat.values() if np.isfinite(v)]
        return max(values) if values else float("nan")

    @property
    def min_ess_bulk(self) -> float:
        values = [v for v in self.ess_bulk.values() if np.isfinite(v)]
        return min(values) if values else float("nan")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_divergent": self.n_divergent,
            "n_max_treedepth": self.n_max_treedepth,
            "n_draws": self.n_draws,
            "max_r_hat": self.max_r_hat,
            "min_ess_bulk": self.min_ess_bulk,
            "ess_bulk": self.ess_bulk,
            "ess_tail": self.ess_tail,
            "r_hat": self.r_hat,
        }


@dataclass(frozen=True, eq=False)
class FitResult:
    """
    Posterior draws and diagnostics of one fitted spec.

    Attributes:
        spec_name: Name of the fitted spec
        draws: Parameter name -> array of draws, chains concatenated in order
            (shape ``(S,)`` for scalars, ``(S, k)`` for vectors)
        diagnostics: Sampler diagnostics
        log_likelihood: Pointwise log-likelihood, shape (S, n), when tracked
        posterior_predictive: Replicated data, shape (S, n), when drawn
        inference_data: The sampler's ArviZ InferenceData, for presentation
        sampling_config: Settings the fit ran with
        elapsed: Wall-clock seconds spent fitting
        response: Dataset column the model was fitted to
    """
    spec_name: str
    draws: Dict[str, np.ndarray] = field(repr=False)
    diagnostics: SamplerDiagnostics
    log_likelihood: Optional[np.ndarray] = field(default=None, repr=False)
    posterior_predictive: Optional[np.ndarray] = field(default=None, repr=False)
    inference_data: Any = field(default=None, repr=False, compare=False)
    sampling_config: Optional[SamplingConfig] = field(default=None, repr=False)
    elapsed: float = 0.0
    response: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "draws", {str(k): _read_only(v) for k, v in self.draws.items()})
        if self.log_likelihood is not None:
            loglik = _read_only(self.log_likelihood)
            if loglik.ndim != 2:
                raise ValueError(f"log_likelihood must be a (draws, observations) matrix, got shape {loglik.shape}")
            object.__setattr__(self, "log_likelihood", loglik)
        if self.posterior_predictive is not None:
            object.__setattr__(self, "posterior_predictive", _read_only(self.posterior_predictive))

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return tuple(self.draws)

    @property
    def n_draws(self) -> int:
        first = next(iter(self.draws.values()), None)
        return 0 if first is None else int(first.shape[0])

    @property
    def has_log_likelihood(self) -> bool:
        return self.log_likelihood is not None

    def posterior(self, name: str) -> np.ndarray:
        """Draws of one parameter."""
        try:
            return self.draws[name]
        except KeyError:
            raise KeyError(f"Parameter '{name}' not in fit '{self.spec_name}'; "
                           f"available: {list(self.draws)}") from None

    def posterior_mean(self, name: str) -> np.ndarray:
        return self.posterior(name).mean(axis=0)

    def to_frame(self) -> pd.DataFrame:
        """Draws as a (draws x scalar parameters) table."""
        columns = {}
        for name, values in self.draws.items():
            if values.ndim == 1:
                columns[name] = values
            else:
                flat = values.reshape(values.shape[0], -1)
                for j in range(flat.shape[1]):
                    columns[f"{name}[{j}]"] = flat[:, j]
        return pd.DataFrame(columns)


@dataclass(frozen=True, eq=False)
class LooScore:
    """
    PSIS-LOO estimate of expected log predictive density for one fit.

    Attributes:
        elpd_loo: Sum of pointwise elpd contributions
        se: Standard error of elpd_loo
        p_loo: Effective number of parameters (lppd - elpd_loo)
        elpd_i: Pointwise contributions, one per observation
        pareto_k: Pareto shape estimate per observation
        n_bad_k: Observations with pareto_k above the threshold
        k_threshold: Threshold used for n_bad_k
        n_draws: Posterior draws the estimate used
    """
    elpd_loo: float
    se: float
    p_loo: float
    elpd_i: np.ndarray = field(repr=False)
    pareto_k: np.ndarray = field(repr=False)
    n_bad_k: int
    k_threshold: float
    n_draws: int

    def __post_init__(self):
        object.__setattr__(self, "elpd_i", _read_only(self.elpd_i))
        object.__setattr__(self, "pareto_k", _read_only(self.pareto_k))

    @property
    def n_obs(self) -> int:
        return int(self.elpd_i.shape[0])

    @property
    def looic(self) -> float:
        return -2.0 * self.elpd_loo

    @property
    def warning(self) -> bool:
        return self.n_bad_k > 0

    @property
    def bad_k_indices(self) -> np.ndarray:
        return np.flatnonzero(self.pareto_k > self.k_threshold)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elpd_loo": self.elpd_loo,
            "se": self.se,
            "p_loo": self.p_loo,
            "looic": self.looic,
            "n_obs": self.n_obs,
            "n_draws": self.n_draws,
            "n_bad_k": self.n_bad_k,
            "k_threshold": self.k_threshold,
            "max_pareto_k": float(np.max(self.pareto_k)) if self.n_obs else float("nan"),
        }


class SpecState(enum.Enum):
    PENDING = "pending"
    FITTING = "fitting"
    FITTED = "fitted"
    FIT_FAILED = "fit_failed"
    SCORED = "scored"
    SCORING_SKIPPED = "scoring_skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (SpecState.FIT_FAILED, SpecState.SCORED, SpecState.SCORING_SKIPPED)


_TRANSITIONS = {
    SpecState.PENDING: {SpecState.FITTING},
    SpecState.FITTING: {SpecState.FITTED, SpecState.FIT_FAILED},
    SpecState.FITTED: {SpecState.SCORED, SpecState.SCORING_SKIPPED},
}


@dataclass(frozen=True)
class SpecOutcome:
    """
    Where one spec ended up in a run, with its results or failure reason.

    ``error_kind`` is ``"sampler"``, ``"timeout"``, ``"scoring"`` or
    ``"not_tracked"`` (scoring skipped because the spec keeps no
    log-likelihood); ``message`` carries the diagnostic text.
    """
    spec: ModelSpec
    state: SpecState = SpecState.PENDING
    fit: Optional[FitResult] = None
    loo: Optional[LooScore] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None
    history: Tuple[SpecState, ...] = (SpecState.PENDING,)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def result(self) -> Tuple[Optional[FitResult], Optional[LooScore]]:
        return self.fit, self.loo

    def advance(self, state: SpecState, **changes: Any) -> "SpecOutcome":
        """
        Return a copy moved to ``state``.

        Raises:
            ValueError: If the state machine does not allow the move
        """
        if state not in _TRANSITIONS.get(self.state, set()):
            raise ValueError(f"Spec '{self.name}' cannot move from {self.state.name} to {state.name}")
        return dataclasses.replace(self, state=state, history=self.history + (state,), **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "error_kind": self.error_kind,
            "message": self.message,
            "spec": self.spec.to_dict(),
            "diagnostics": self.fit.diagnostics.to_dict() if self.fit is not None else None,
            "elapsed": self.fit.elapsed if self.fit is not None else None,
            "loo": self.loo.to_dict() if self.loo is not None else None,
        }


class RunReport(Mapping):
    """
    Read-only mapping of spec name to SpecOutcome, in the order the specs
    were requested.
    """

    def __init__(self, outcomes: List[SpecOutcome]):
        self._outcomes = {outcome.name: outcome for outcome in outcomes}

    def __getitem__(self, name: str) -> SpecOutcome:
        return self._outcomes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def __repr__(self) -> str:
        states = ", ".join(f"{k}={v.state.name}" for k, v in self._outcomes.items())
        return f"RunReport({states})"

    def with_state(self, *states: SpecState) -> Dict[str, SpecOutcome]:
        return {k: v for k, v in self._outcomes.items() if v.state in states}

    @property
    def scores(self) -> Dict[str, LooScore]:
        return {k: v.loo for k, v in self.with_state(SpecState.SCORED).items()}

    @property
    def fits(self) -> Dict[str, FitResult]:
        return {k: v.fit for k, v in self._outcomes.items() if v.fit is not None}

    @property
    def failed(self) -> Dict[str, SpecOutcome]:
        return self.with_state(SpecState.FIT_FAILED)

    def compare(self):
        """Rank the scored specs; see model.comparison.compare."""
        from model.comparison import compare
        return compare(self.scores)

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for outcome in self._outcomes.values():
            row = {"model": outcome.name, "state": outcome.state.value, "error_kind": outcome.error_kind}
            if outcome.fit is not None:
                row["n_divergent"] = outcome.fit.diagnostics.n_divergent
                row["max_r_hat"] = outcome.fit.diagnostics.max_r_hat
            if outcome.loo is not None:
                row.update({"elpd_loo": outcome.loo.elpd_loo, "se": outcome.loo.se,
                            "p_loo": outcome.loo.p_loo, "n_bad_k": outcome.loo.n_bad_k})
            rows.append(row)
        return pd.DataFrame(rows).set_index("model")
