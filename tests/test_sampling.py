#!/usr/bin/env python3
"""
End-to-end tests with real PyMC sampling.

These fit small models and take a few seconds each.
"""
import os
import sys
import unittest

import numpy as np
import pandas as pd

# Add the parent directory to sys.path so we can import from model
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from data.dataset import Dataset
from model.comparison import pairwise_difference
from model.exceptions import SamplerError
from model.model_runner import ModelRunner
from model.predictive import posterior_predictive_check
from model.results import SpecState
from model.sampling import BayesianSampler
from model.specs import ModelSpec, Prior, SamplingConfig


def small_config(**overrides):
    values = dict(chains=2, draws=500, tune=500, cores=1, random_seed=123, max_workers=1)
    values.update(overrides)
    return SamplingConfig(**values)


class TestBayesianSampler(unittest.TestCase):

    def setUp(self):
        self.coin = Dataset(pd.DataFrame({"y": [1, 1, 1, 0, 1, 1, 1, 0, 1, 0]}))
        self.coin_spec = ModelSpec("bernoulli-uniform", "y ~ 1", family="bernoulli",
                                   priors={"theta": Prior.of("uniform", lower=0, upper=1)})

    def test_bernoulli_uniform(self):
        report = ModelRunner().run(self.coin, [self.coin_spec], small_config())
        outcome = report["bernoulli-uniform"]

        self.assertEqual(outcome.state, SpecState.SCORED)
        theta = outcome.fit.posterior("theta")
        self.assertEqual(theta.shape, (1000,))
        self.assertTrue(np.all((theta > 0) & (theta < 1)))
        self.assertGreater(outcome.fit.posterior_mean("theta"), 0.5)
        self.assertLess(outcome.fit.posterior_mean("theta"), 0.8)

        diagnostics = outcome.fit.diagnostics
        self.assertEqual(diagnostics.n_draws, 1000)
        self.assertIn("theta", diagnostics.r_hat)
        self.assertLess(diagnostics.max_r_hat, 1.05)
        self.assertEqual(outcome.fit.log_likelihood.shape, (1000, 10))
        self.assertGreater(outcome.loo.se, 0.0)

    def test_binomial_odds_ratio(self):
        trial = Dataset.from_records([
            {"group": 0, "n": 674, "y": 39},
            {"group": 1, "n": 680, "y": 22},
        ])
        spec = ModelSpec("treatment", "y ~ group", family="binomial", trials="n")
        fit = BayesianSampler().fit(trial, spec, small_config())

        odds_ratio = np.exp(fit.posterior("group"))
        low, median, high = np.quantile(odds_ratio, [0.05, 0.5, 0.95])
        self.assertLess(median, 1.0)
        self.assertGreater(low, 0.0)
        self.assertLess(high, 10.0)

    def test_reproducible_with_seed(self):
        specs = [self.coin_spec]
        first = ModelRunner().run(self.coin, specs, small_config())
        second = ModelRunner().run(self.coin, specs, small_config())

        np.testing.assert_allclose(first["bernoulli-uniform"].fit.posterior("theta"),
                                   second["bernoulli-uniform"].fit.posterior("theta"))
        self.assertAlmostEqual(first["bernoulli-uniform"].loo.elpd_loo,
                               second["bernoulli-uniform"].loo.elpd_loo, places=8)

    def test_identical_specs(self):
        specs = [self.coin_spec, ModelSpec("copy", "y ~ 1", family="bernoulli",
                                           priors={"theta": Prior.of("uniform", lower=0, upper=1)})]
        report = ModelRunner().run(self.coin, specs, small_config(max_workers=2))
        diff, _ = pairwise_difference(report["bernoulli-uniform"].loo, report["copy"].loo)
        self.assertLessEqual(abs(diff), report["copy"].loo.se)

    def test_gaussian_and_student_t_indistinguishable(self):
        rng = np.random.default_rng(2024)
        x = rng.normal(size=60)
        data = Dataset(pd.DataFrame({"x": x, "y": 1.0 + 0.8 * x + rng.normal(scale=0.5, size=60)}))
        specs = [ModelSpec("gaussian", "y ~ x"), ModelSpec("student", "y ~ x", family="student_t")]

        report = ModelRunner().run(data, specs, small_config())
        self.assertEqual(set(report.scores), {"gaussian", "student"})
        table = report.compare()
        other = table.index[1]
        self.assertLess(abs(table.loc[other, "elpd_diff"]), table.loc[other, "dse"])

    def test_posterior_predictive_check(self):
        fit = BayesianSampler().fit(self.coin, self.coin_spec, small_config(posterior_predictive=True))
        self.assertEqual(fit.posterior_predictive.shape, (1000, 10))

        check = posterior_predictive_check(fit, self.coin, statistic=np.mean)
        self.assertAlmostEqual(check.observed, 0.7)
        self.assertGreater(check.p_value, 0.05)
        self.assertLess(check.p_value, 0.95)

    def test_untracked_log_likelihood(self):
        spec = ModelSpec("quiet", "y ~ 1", family="bernoulli", log_likelihood=False)
        fit = BayesianSampler().fit(self.coin, spec, small_config())
        self.assertIsNone(fit.log_likelihood)
        self.assertEqual(fit.response, "y")

    def test_non_convergence_raises(self):
        # twenty draws per chain cannot meet an R-hat ceiling of 1.0001
        config = small_config(chains=2, draws=20, tune=5, max_rhat=1.0001)
        spec = ModelSpec("gaussian", "y ~ 1")
        data = Dataset(pd.DataFrame({"y": np.linspace(-1.0, 1.0, 15)}))
        with self.assertRaises(SamplerError):
            BayesianSampler().fit(data, spec, config)


if __name__ == "__main__":
    unittest.main()
