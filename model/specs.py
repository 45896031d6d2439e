"""
Model and sampling specifications.

A ModelSpec names one candidate model: a formula ("y ~ x + z"), a likelihood
family and per-parameter priors. A SamplingConfig carries every MCMC and
parallelism setting of a run, so no global RNG or library option is touched.

Both types are frozen dataclasses and hold only tuples and scalars, so they
can be shared across worker threads and pickled for worker processes.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from model.constants import (
    BINARY_FAMILIES,
    DEFAULT_CHAINS,
    DEFAULT_DRAWS,
    DEFAULT_MAX_TREEDEPTH,
    DEFAULT_TARGET_ACCEPT,
    DEFAULT_TUNE,
    FAMILY_AUXILIARY_PARAMS,
    INTERCEPT,
    LIKELIHOOD_FAMILIES,
    OBSERVED_VARIABLE,
    POSITIVE_PRIORS,
    PRIOR_HYPERPARAMETERS,
    PROBABILITY_PARAM,
    RUNNER_BACKENDS,
)
from model.exceptions import ConfigurationError, InvalidSpecError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

# Hyperparameters that must be strictly positive
_POSITIVE_HYPERPARAMETERS = {"sigma", "nu", "lam", "alpha", "beta"}


@dataclass(frozen=True)
class Prior:
    """
    A named prior distribution with its hyperparameters.

    Use ``Prior.of("normal", mu=0, sigma=1)`` or ``Prior.from_dict``.
    """
    distribution: str
    params: Tuple[Tuple[str, float], ...] = ()

    def __post_init__(self):
        expected = PRIOR_HYPERPARAMETERS.get(self.distribution)
        if expected is None:
            raise InvalidSpecError(f"Unknown prior distribution '{self.distribution}'",
                                   details=sorted(PRIOR_HYPERPARAMETERS))

        given = dict(self.params)
        if set(given) != set(expected):
            raise InvalidSpecError(
                f"Prior '{self.distribution}' takes hyperparameters {list(expected)}",
                details=sorted(given),
            )

        for key, value in given.items():
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidSpecError(f"Hyperparameter '{key}' of '{self.distribution}' must be a finite number")
            if key in _POSITIVE_HYPERPARAMETERS and value <= 0:
                raise InvalidSpecError(f"Hyperparameter '{key}' of '{self.distribution}' must be positive")

        if self.distribution == "uniform" and not given["lower"] < given["upper"]:
            raise InvalidSpecError("Uniform prior needs lower < upper", details=given)

        object.__setattr__(self, "params", tuple((k, float(given[k])) for k in expected))

    @classmethod
    def of(cls, distribution: str, **params: float) -> "Prior":
        return cls(distribution, tuple(params.items()))

    @classmethod
    def from_dict(cls, spec: Mapping[str, Any]) -> "Prior":
        """Build a prior from ``{"distribution": name, <hyperparameter>: value, ...}``."""
        spec = dict(spec)
        try:
            distribution = spec.pop("distribution")
        except KeyError:
            raise InvalidSpecError("Prior definition needs a 'distribution' entry", details=spec)
        return cls(distribution, tuple(spec.items()))

    @property
    def kwargs(self) -> Dict[str, float]:
        return dict(self.params)

    def to_dict(self) -> Dict[str, Any]:
        return {"distribution": self.distribution, **self.kwargs}

    def __str__(self) -> str:
        args = ", ".join(f"{k}={v:g}" for k, v in self.params)
        return f"{self.distribution}({args})"


@dataclass(frozen=True)
class Formula:
    """Parsed ``response ~ terms`` relation."""
    response: str
    covariates: Tuple[str, ...]
    intercept: bool

    @classmethod
    def parse(cls, text: str) -> "Formula":
        """
        Parse a formula of the form ``y ~ 1 + x1 + x2``.

        ``0`` or ``- 1`` removes the intercept, ``1`` keeps it (the default).

        Raises:
            InvalidSpecError: If the formula is malformed
        """
        if not isinstance(text, str) or text.count("~") != 1:
            raise InvalidSpecError(f"Malformed formula {text!r}: expected exactly one '~'")

        lhs, rhs = (part.strip() for part in text.split("~"))
        if not _IDENTIFIER.match(lhs):
            raise InvalidSpecError(f"Malformed formula {text!r}: invalid response '{lhs}'")
        if not rhs:
            raise InvalidSpecError(f"Malformed formula {text!r}: no terms on the right-hand side")

        tokens = re.findall(r"[+-]|[^\s+-]+", rhs)
        intercept = True
        covariates = []
        sign = "+"
        expect_term = True
        for position, token in enumerate(tokens):
            if token in ("+", "-"):
                # only a leading sign may appear where a term is expected
                if expect_term and position > 0:
                    raise InvalidSpecError(f"Malformed formula {text!r}: dangling operator")
                sign = token
                expect_term = True
                continue
            if not expect_term:
                raise InvalidSpecError(f"Malformed formula {text!r}: missing operator before '{token}'")
            expect_term = False

            if token in ("0", "1"):
                keep = (token == "1") == (sign == "+")
                intercept = keep
            elif _IDENTIFIER.match(token):
                if sign == "-":
                    raise InvalidSpecError(f"Malformed formula {text!r}: cannot remove term '{token}'")
                if token == lhs:
                    raise InvalidSpecError(f"Malformed formula {text!r}: response used as covariate")
                if token in covariates:
                    raise InvalidSpecError(f"Malformed formula {text!r}: duplicate term '{token}'")
                covariates.append(token)
            else:
                raise InvalidSpecError(f"Malformed formula {text!r}: unsupported term '{token}'")
            sign = "+"

        if expect_term:
            raise InvalidSpecError(f"Malformed formula {text!r}: dangling operator")
        if not intercept and not covariates:
            raise InvalidSpecError(f"Malformed formula {text!r}: model has no terms")

        return cls(response=lhs, covariates=tuple(covariates), intercept=intercept)

    @property
    def variables(self) -> Tuple[str, ...]:
        return (self.response,) + self.covariates


PriorsArg = Union[Mapping[str, Union[Prior, Mapping[str, Any]]], Iterable[Tuple[str, Prior]], None]


@dataclass(frozen=True)
class ModelSpec:
    """
    Named candidate model.

    Attributes:
        name: Unique name within a run
        formula: ``response ~ terms`` relation
        family: Likelihood family, one of LIKELIHOOD_FAMILIES
        priors: Prior per parameter name; parameters without an entry use the
            library default. Stored as a sorted tuple of (name, Prior) pairs.
        trials: Column holding trial counts (required for the binomial family)
        log_likelihood: Whether to keep pointwise log-likelihood for LOO scoring
    """
    name: str
    formula: str
    family: str = "gaussian"
    priors: PriorsArg = ()
    trials: Optional[str] = None
    log_likelihood: bool = True
    formula_terms: Formula = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidSpecError("Model spec needs a non-empty name")

        family = str(self.family).lower()
        if family not in LIKELIHOOD_FAMILIES:
            raise InvalidSpecError(f"Unknown likelihood family '{self.family}' in spec '{self.name}'",
                                   details=list(LIKELIHOOD_FAMILIES))
        object.__setattr__(self, "family", family)

        object.__setattr__(self, "formula_terms", Formula.parse(self.formula))

        if family == "binomial" and not self.trials:
            raise InvalidSpecError(f"Spec '{self.name}': binomial family needs a trials column")
        if family != "binomial" and self.trials:
            raise InvalidSpecError(f"Spec '{self.name}': trials column only applies to the binomial family")

        reserved = {INTERCEPT, PROBABILITY_PARAM, OBSERVED_VARIABLE} | set(FAMILY_AUXILIARY_PARAMS[family])
        clashes = sorted(reserved & set(self.covariates))
        if clashes:
            raise InvalidSpecError(f"Spec '{self.name}': covariate names clash with model parameters",
                                   details=clashes)

        priors = self._normalise_priors(self.priors)
        unknown = sorted(set(priors) - set(self.parameter_names))
        if unknown:
            raise InvalidSpecError(f"Spec '{self.name}' sets priors for unknown parameters",
                                   details={"unknown": unknown, "parameters": list(self.parameter_names)})
        for parameter, prior in priors.items():
            self._check_support(parameter, prior)
        object.__setattr__(self, "priors", tuple(sorted(priors.items())))

    def _check_support(self, parameter: str, prior: Prior) -> None:
        """Constrained parameters need priors on a matching support."""
        if parameter == PROBABILITY_PARAM:
            bounds = (0.0, 1.0)
        elif parameter in FAMILY_AUXILIARY_PARAMS[self.family]:
            bounds = (0.0, math.inf)
        else:
            return

        if prior.distribution == "uniform":
            ok = bounds[0] <= prior.kwargs["lower"] and prior.kwargs["upper"] <= bounds[1]
        elif bounds[1] == 1.0:
            ok = prior.distribution == "beta"
        else:
            ok = prior.distribution in POSITIVE_PRIORS
        if not ok:
            raise InvalidSpecError(
                f"Spec '{self.name}': prior {prior} does not match the support of '{parameter}'",
                details={"support": bounds},
            )

    def _normalise_priors(self, priors: PriorsArg) -> Dict[str, Prior]:
        if priors is None:
            return {}
        items = priors.items() if isinstance(priors, Mapping) else priors
        normalised = {}
        for key, prior in items:
            if isinstance(prior, Mapping):
                prior = Prior.from_dict(prior)
            elif not isinstance(prior, Prior):
                raise InvalidSpecError(f"Spec '{self.name}': prior for '{key}' is not a Prior",
                                       details=repr(prior))
            normalised[str(key)] = prior
        return normalised

    @property
    def response(self) -> str:
        return self.formula_terms.response

    @property
    def covariates(self) -> Tuple[str, ...]:
        return self.formula_terms.covariates

    @property
    def uses_probability_parameter(self) -> bool:
        """Intercept-only Bernoulli/Binomial models sample the success probability directly."""
        return self.family in BINARY_FAMILIES and not self.covariates

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        """Names of the model's free parameters, in sampling order."""
        if self.uses_probability_parameter:
            names = [PROBABILITY_PARAM]
        else:
            names = ([INTERCEPT] if self.formula_terms.intercept else []) + list(self.covariates)
        return tuple(names) + FAMILY_AUXILIARY_PARAMS[self.family]

    @property
    def required_columns(self) -> Tuple[str, ...]:
        columns = self.formula_terms.variables
        return columns + ((self.trials,) if self.trials else ())

    def prior_for(self, parameter: str) -> Optional[Prior]:
        """Prior set for ``parameter`` or None when left to the library default."""
        return dict(self.priors).get(parameter)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "formula": self.formula,
            "family": self.family,
            "priors": {k: p.to_dict() for k, p in self.priors},
            "trials": self.trials,
            "log_likelihood": self.log_likelihood,
        }

    @classmethod
    def from_dict(cls, spec: Mapping[str, Any]) -> "ModelSpec":
        known = {"name", "formula", "family", "priors", "trials", "log_likelihood"}
        extra = sorted(set(spec) - known)
        if extra:
            raise InvalidSpecError("Unknown model spec fields", details=extra)
        try:
            return cls(**dict(spec))
        except TypeError as e:
            raise InvalidSpecError(f"Incomplete model spec: {str(e)}", details=dict(spec))


@dataclass(frozen=True)
class SamplingConfig:
    """
    MCMC and parallelism settings for one run.

    Attributes:
        chains: Number of MCMC chains per fit
        draws: Post-warmup draws per chain
        tune: Warmup (tuning) steps per chain
        random_seed: Seed for every fit; None draws fresh entropy
        cores: Processes the sampler uses for its chains (None: sampler default)
        target_accept: NUTS target acceptance rate
        max_treedepth: NUTS maximum tree depth
        max_workers: Size of the runner's worker pool (None: CPU count)
        fit_timeout: Seconds the runner waits for each fit (None: no limit)
        backend: "thread" or "process" worker pool
        posterior_predictive: Also draw replicated data for predictive checks
        max_rhat: Treat fits with any R-hat above this as non-converged
        progressbar: Show the sampler's progress bar
    """
    chains: int = DEFAULT_CHAINS
    draws: int = DEFAULT_DRAWS
    tune: int = DEFAULT_TUNE
    random_seed: Optional[int] = None
    cores: Optional[int] = None
    target_accept: float = DEFAULT_TARGET_ACCEPT
    max_treedepth: int = DEFAULT_MAX_TREEDEPTH
    max_workers: Optional[int] = None
    fit_timeout: Optional[float] = None
    backend: str = "thread"
    posterior_predictive: bool = False
    max_rhat: Optional[float] = None
    progressbar: bool = False

    def __post_init__(self):
        for name in ("chains", "draws", "tune", "max_treedepth"):
            self._check_positive_int(name, getattr(self, name))
        for name in ("cores", "max_workers"):
            value = getattr(self, name)
            if value is not None:
                self._check_positive_int(name, value)
        seed = self.random_seed
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
            raise ConfigurationError(f"random_seed must be a non-negative integer, got {seed!r}")

        if not 0.0 < self.target_accept < 1.0:
            raise ConfigurationError(f"target_accept must be in (0, 1), got {self.target_accept}")
        if self.fit_timeout is not None and not self.fit_timeout > 0:
            raise ConfigurationError(f"fit_timeout must be positive, got {self.fit_timeout}")
        if self.max_rhat is not None and not self.max_rhat > 1.0:
            raise ConfigurationError(f"max_rhat must be greater than 1, got {self.max_rhat}")
        if self.backend not in RUNNER_BACKENDS:
            raise ConfigurationError(f"Unknown runner backend '{self.backend}'", details=list(RUNNER_BACKENDS))

    @staticmethod
    def _check_positive_int(name: str, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

    @property
    def total_draws(self) -> int:
        return self.chains * self.draws
