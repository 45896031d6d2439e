#!/usr/bin/env python3
"""
Tests for dataset and model spec loading.
"""
import json
import os
import sys
import tempfile
import unittest

import pandas as pd

# Add the parent directory to sys.path so we can import from data
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from data.data_loader import DatasetLoader, load_model_specs
from model.exceptions import DataFormatError, DataValidationError, InvalidSpecError


class TestDatasetLoader(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.frame = pd.DataFrame({
            "Group": [0, 1],
            "n": [674, 680],
            "deaths": [39, 22],
            "site": ["a", "b"],
        })

    def tearDown(self):
        self.tmp.cleanup()

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def test_load_csv_with_mapping_and_columns(self):
        self.frame.to_csv(self.path("trial.csv"), index=False)
        loader = DatasetLoader(self.path("trial.csv"),
                               column_mapping={"Group": "group", "deaths": "y"},
                               columns=["group", "n", "y"])
        dataset = loader.load()

        self.assertEqual(dataset.name, "trial")
        self.assertEqual(dataset.columns, ("group", "n", "y"))
        self.assertEqual(list(dataset.column("y")), [39, 22])

    def test_load_json_records(self):
        self.frame.drop(columns=["site"]).to_json(self.path("trial.json"), orient="records")
        dataset = DatasetLoader(self.path("trial.json")).load()
        self.assertEqual(dataset.n_obs, 2)
        self.assertEqual(set(dataset.columns), {"Group", "n", "deaths"})

    def test_non_numeric_columns_rejected(self):
        self.frame.to_csv(self.path("trial.csv"), index=False)
        with self.assertRaises(DataValidationError):
            DatasetLoader(self.path("trial.csv")).load()

    def test_missing_requested_column(self):
        self.frame.to_csv(self.path("trial.csv"), index=False)
        with self.assertRaises(DataValidationError):
            DatasetLoader(self.path("trial.csv"), columns=["y"]).load()

    def test_drop_missing(self):
        pd.DataFrame({"y": [1.0, None, 2.0]}).to_csv(self.path("gaps.csv"), index=False)
        with self.assertRaises(DataValidationError):
            DatasetLoader(self.path("gaps.csv")).load()
        self.assertEqual(DatasetLoader(self.path("gaps.csv"), drop_missing=True).load().n_obs, 2)

    def test_missing_file_and_bad_format(self):
        with self.assertRaises(DataFormatError):
            DatasetLoader(self.path("absent.csv"))
        with open(self.path("trial.xlsx"), "w") as f:
            f.write("not a spreadsheet")
        with self.assertRaises(DataFormatError):
            DatasetLoader(self.path("trial.xlsx"))


class TestLoadModelSpecs(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.specs = [
            {"name": "gaussian", "formula": "y ~ x"},
            {"name": "robust", "formula": "y ~ x", "family": "student_t",
             "priors": {"nu": {"distribution": "gamma", "alpha": 2, "beta": 0.1}}},
        ]

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, content, name="specs.json"):
        path = os.path.join(self.tmp.name, name)
        with open(path, "w") as f:
            f.write(content if isinstance(content, str) else json.dumps(content))
        return path

    def test_list_and_models_key(self):
        for content in (self.specs, {"models": self.specs}):
            specs = load_model_specs(self.write(content))
            self.assertEqual([s.name for s in specs], ["gaussian", "robust"])
            self.assertEqual(specs[1].family, "student_t")
            self.assertEqual(specs[1].prior_for("nu").kwargs, {"alpha": 2.0, "beta": 0.1})

    def test_invalid_files(self):
        with self.assertRaises(DataFormatError):
            load_model_specs(os.path.join(self.tmp.name, "absent.json"))
        with self.assertRaises(DataFormatError):
            load_model_specs(self.write("{not json"))
        with self.assertRaises(InvalidSpecError):
            load_model_specs(self.write({"name": "a"}))
        with self.assertRaises(InvalidSpecError):
            load_model_specs(self.write(["y ~ x"]))
        with self.assertRaises(InvalidSpecError):
            load_model_specs(self.write([{"name": "a", "formula": "y ~"}]))


if __name__ == "__main__":
    unittest.main()
