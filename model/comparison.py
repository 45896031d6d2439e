"""
Ranking of fitted models by estimated out-of-sample predictive performance.

Differences between two models are computed pointwise, so the standard error
of a difference accounts for the correlation between the models' errors:

    se(A - B) = sqrt(n) * sd(elpd_i(A) - elpd_i(B))
"""
from typing import Mapping, Tuple

import numpy as np
import pandas as pd

from model.exceptions import ScoringError
from model.results import LooScore
from utils.logging_utils import get_logger

logger = get_logger()

COMPARISON_COLUMNS = ["rank", "elpd_loo", "p_loo", "elpd_diff", "se", "dse", "n_bad_k", "warning"]


def _check_compatible(a: LooScore, b: LooScore, names: Tuple[str, str]) -> None:
    if a.n_obs != b.n_obs:
        raise ScoringError(
            f"Cannot compare '{names[0]}' and '{names[1]}': scored on different observation counts",
            details={names[0]: a.n_obs, names[1]: b.n_obs},
        )


def pairwise_difference(a: LooScore, b: LooScore, names: Tuple[str, str] = ("a", "b")) -> Tuple[float, float]:
    """
    Difference in elpd_loo between two models and its standard error.

    Args:
        a: Score of the first model
        b: Score of the second model
        names: Labels for error messages

    Returns:
        Tuple of (elpd_loo(a) - elpd_loo(b), standard error of the difference)

    Raises:
        ScoringError: If the scores cover different observation counts
    """
    _check_compatible(a, b, names)
    diff_i = a.elpd_i - b.elpd_i
    n = len(diff_i)
    se = float(np.sqrt(n) * np.std(diff_i, ddof=1)) if n > 1 else float("nan")
    return float(np.sum(diff_i)), se


def compare(scores: Mapping[str, LooScore]) -> pd.DataFrame:
    """
    Rank models by elpd_loo, best first.

    ``elpd_diff`` and ``dse`` are relative to the top-ranked model (zero for
    it); ``se`` is each model's own standard error.

    Args:
        scores: Model name -> LooScore, at least two entries

    Returns:
        DataFrame indexed by model name with COMPARISON_COLUMNS

    Raises:
        ScoringError: With fewer than two scores or incompatible scores
    """
    if len(scores) < 2:
        raise ScoringError(f"Model comparison needs at least two scored models, got {len(scores)}")

    names = list(scores)
    elpd = np.array([scores[name].elpd_loo for name in names])
    # stable sort keeps request order among ties
    order = np.argsort(-elpd, kind="mergesort")
    best = names[order[0]]

    rows = []
    for rank, idx in enumerate(order):
        name = names[idx]
        score = scores[name]
        if name == best:
            diff, dse = 0.0, 0.0
        else:
            diff, dse = pairwise_difference(scores[best], score, names=(best, name))
        rows.append({
            "model": name,
            "rank": rank,
            "elpd_loo": score.elpd_loo,
            "p_loo": score.p_loo,
            "elpd_diff": diff,
            "se": score.se,
            "dse": dse,
            "n_bad_k": score.n_bad_k,
            "warning": score.warning,
        })

    table = pd.DataFrame(rows).set_index("model")[COMPARISON_COLUMNS]
    logger.info(f"Model ranking by elpd_loo: {list(table.index)}")
    return table


def pairwise_table(scores: Mapping[str, LooScore]) -> pd.DataFrame:
    """
    Differences for every pair of models, in request order.

    Returns:
        DataFrame with columns model_a, model_b, elpd_diff (a - b), dse
    """
    names = list(scores)
    rows = []
    for i, a in enumerate(names):
        for b in names[i + 1:]:
            diff, dse = pairwise_difference(scores[a], scores[b], names=(a, b))
            rows.append({"model_a": a, "model_b": b, "elpd_diff": diff, "dse": dse})
    return pd.DataFrame(rows, columns=["model_a", "model_b", "elpd_diff", "dse"])
