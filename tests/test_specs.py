#!/usr/bin/env python3
"""
Tests for model and sampling specifications.
"""
import os
import pickle
import sys
import unittest

# Add the parent directory to sys.path so we can import from model
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from model.exceptions import ConfigurationError, InvalidSpecError
from model.specs import Formula, ModelSpec, Prior, SamplingConfig


class TestPrior(unittest.TestCase):

    def test_of_and_from_dict_agree(self):
        a = Prior.of("normal", sigma=2.5, mu=0)
        b = Prior.from_dict({"distribution": "normal", "mu": 0.0, "sigma": 2.5})
        self.assertEqual(a, b)
        self.assertEqual(a.kwargs, {"mu": 0.0, "sigma": 2.5})
        self.assertEqual(str(a), "normal(mu=0, sigma=2.5)")
        self.assertEqual(Prior.from_dict(a.to_dict()), a)

    def test_unknown_distribution(self):
        with self.assertRaises(InvalidSpecError):
            Prior.of("lognormal", mu=0, sigma=1)

    def test_wrong_hyperparameters(self):
        with self.assertRaises(InvalidSpecError):
            Prior.of("normal", mu=0)
        with self.assertRaises(InvalidSpecError):
            Prior.of("normal", mu=0, sigma=1, nu=3)

    def test_invalid_values(self):
        with self.assertRaises(InvalidSpecError):
            Prior.of("normal", mu=0, sigma=-1)
        with self.assertRaises(InvalidSpecError):
            Prior.of("normal", mu=float("nan"), sigma=1)
        with self.assertRaises(InvalidSpecError):
            Prior.of("uniform", lower=1, upper=0)
        with self.assertRaises(InvalidSpecError):
            Prior.of("normal", mu="zero", sigma=1)

    def test_missing_distribution_key(self):
        with self.assertRaises(InvalidSpecError):
            Prior.from_dict({"mu": 0, "sigma": 1})


class TestFormula(unittest.TestCase):

    def test_intercept_and_covariates(self):
        f = Formula.parse("y ~ x1 + x2")
        self.assertEqual(f.response, "y")
        self.assertEqual(f.covariates, ("x1", "x2"))
        self.assertTrue(f.intercept)
        self.assertEqual(f.variables, ("y", "x1", "x2"))

    def test_explicit_intercept(self):
        f = Formula.parse("y~1")
        self.assertEqual(f.covariates, ())
        self.assertTrue(f.intercept)

    def test_intercept_removal(self):
        self.assertFalse(Formula.parse("y ~ 0 + x").intercept)
        self.assertFalse(Formula.parse("y ~ x - 1").intercept)
        self.assertFalse(Formula.parse("y ~ -1 + x").intercept)

    def test_malformed(self):
        for text in ["y x", "y ~", "~ x", "y ~ x ~ z", "y ~ x +", "y ~ x z",
                     "y ~ x + + z", "y ~ 0", "y ~ x - z", "y ~ y", "y ~ x + x",
                     "y ~ log(x)", "2y ~ x"]:
            with self.subTest(text=text):
                with self.assertRaises(InvalidSpecError):
                    Formula.parse(text)


class TestModelSpec(unittest.TestCase):

    def test_defaults(self):
        spec = ModelSpec("linear", "y ~ x")
        self.assertEqual(spec.family, "gaussian")
        self.assertEqual(spec.response, "y")
        self.assertEqual(spec.covariates, ("x",))
        self.assertEqual(spec.parameter_names, ("Intercept", "x", "sigma"))
        self.assertEqual(spec.required_columns, ("y", "x"))
        self.assertIsNone(spec.prior_for("x"))
        self.assertTrue(spec.log_likelihood)

    def test_intercept_only_binary_uses_probability(self):
        spec = ModelSpec("bernoulli-uniform", "y ~ 1", family="Bernoulli",
                         priors={"theta": Prior.of("uniform", lower=0, upper=1)})
        self.assertEqual(spec.family, "bernoulli")
        self.assertTrue(spec.uses_probability_parameter)
        self.assertEqual(spec.parameter_names, ("theta",))
        self.assertEqual(spec.prior_for("theta").distribution, "uniform")

    def test_binomial_needs_trials(self):
        with self.assertRaises(InvalidSpecError):
            ModelSpec("agg", "y ~ group", family="binomial")
        spec = ModelSpec("agg", "y ~ group", family="binomial", trials="n")
        self.assertEqual(spec.required_columns, ("y", "group", "n"))
        self.assertEqual(spec.parameter_names, ("Intercept", "group"))
        with self.assertRaises(InvalidSpecError):
            ModelSpec("lin", "y ~ x", trials="n")

    def test_student_t_parameters(self):
        spec = ModelSpec("robust", "y ~ 0 + x", family="student_t")
        self.assertEqual(spec.parameter_names, ("x", "sigma", "nu"))

    def test_priors_from_dicts_sorted(self):
        spec = ModelSpec("linear", "y ~ x", priors={
            "x": {"distribution": "normal", "mu": 0, "sigma": 1},
            "Intercept": {"distribution": "student_t", "nu": 3, "mu": 0, "sigma": 10},
        })
        self.assertEqual([name for name, _ in spec.priors], ["Intercept", "x"])
        self.assertEqual(spec.prior_for("x"), Prior.of("normal", mu=0, sigma=1))

    def test_invalid_specs(self):
        cases = [
            dict(name="", formula="y ~ x"),
            dict(name="a", formula="y ~ x", family="weibull"),
            dict(name="a", formula="y ~ x", priors={"z": Prior.of("normal", mu=0, sigma=1)}),
            dict(name="a", formula="y ~ x", priors={"x": "normal"}),
            dict(name="a", formula="y ~ sigma"),
            dict(name="a", formula="y ~ 1", family="bernoulli",
                 priors={"theta": Prior.of("normal", mu=0.5, sigma=1)}),
            dict(name="a", formula="y ~ 1", family="bernoulli",
                 priors={"theta": Prior.of("uniform", lower=0, upper=2)}),
            dict(name="a", formula="y ~ x", priors={"sigma": Prior.of("normal", mu=0, sigma=1)}),
        ]
        for kwargs in cases:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(InvalidSpecError):
                    ModelSpec(**kwargs)

    def test_positive_priors_for_scale(self):
        spec = ModelSpec("a", "y ~ x", priors={"sigma": Prior.of("exponential", lam=1.0)})
        self.assertEqual(spec.prior_for("sigma").distribution, "exponential")

    def test_dict_round_trip_and_pickle(self):
        spec = ModelSpec("robust", "y ~ x", family="student_t",
                         priors={"nu": Prior.of("gamma", alpha=2, beta=0.1)})
        self.assertEqual(ModelSpec.from_dict(spec.to_dict()), spec)
        self.assertEqual(pickle.loads(pickle.dumps(spec)), spec)

    def test_from_dict_rejects_unknown_fields(self):
        with self.assertRaises(InvalidSpecError):
            ModelSpec.from_dict({"name": "a", "formula": "y ~ x", "link": "log"})
        with self.assertRaises(InvalidSpecError):
            ModelSpec.from_dict({"name": "a"})

    def test_immutable(self):
        spec = ModelSpec("a", "y ~ x")
        with self.assertRaises(AttributeError):
            spec.name = "b"


class TestSamplingConfig(unittest.TestCase):

    def test_defaults(self):
        config = SamplingConfig()
        self.assertEqual(config.chains, 4)
        self.assertEqual(config.total_draws, 4000)
        self.assertEqual(config.backend, "thread")
        self.assertIsNone(config.random_seed)

    def test_seed_zero_allowed(self):
        self.assertEqual(SamplingConfig(random_seed=0).random_seed, 0)

    def test_invalid_values(self):
        cases = [
            dict(chains=0), dict(draws=-1), dict(tune=1.5), dict(chains=True),
            dict(random_seed=-3), dict(cores=0), dict(max_workers=0),
            dict(target_accept=1.0), dict(fit_timeout=0), dict(max_rhat=0.99),
            dict(backend="cluster"),
        ]
        for kwargs in cases:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ConfigurationError):
                    SamplingConfig(**kwargs)


if __name__ == "__main__":
    unittest.main()
