"""
Scoring Aggregator Tests
========================
Weighted aggregation, threshold test and the edge cases around them.
"""
import pytest

from cloneforge.core.constants import BROWSER_CATEGORY_WEIGHTS, DEFAULT_CHECK_WEIGHT, FEATURE_WEIGHTS
from cloneforge.core.scoring import (
    ScoredCheck,
    aggregate,
    passes_threshold,
    resolve_weight,
    summarize,
)


def test_weighted_aggregate_rounds_half_up():
    checks = [
        ScoredCheck(key="api_integration", score=100, weight=10),
        ScoredCheck(key="search", score=0, weight=8),
    ]
    # 100 * 10 / 18 = 55.55...
    assert aggregate(checks) == 56
    assert passes_threshold(56, 90) is False


def test_exact_half_rounds_up():
    checks = [
        ScoredCheck(key="a", score=100, weight=109),
        ScoredCheck(key="b", score=0, weight=91),
    ]
    # 54.5 -> 55 (round() would give 54)
    assert aggregate(checks) == 55


def test_empty_checks_score_zero_and_never_pass():
    summary = summarize([], threshold=0)
    assert summary.overall == 0
    assert summary.passes_threshold is False


def test_zero_total_weight_scores_zero():
    checks = [ScoredCheck(key="x", score=100, weight=0)]
    assert aggregate(checks) == 0
    assert summarize(checks, threshold=0).passes_threshold is False


def test_weight_falls_back_to_table_then_default():
    table = {"search": 8}
    assert resolve_weight(ScoredCheck(key="search", score=0), table) == 8
    assert resolve_weight(ScoredCheck(key="search", score=0, weight=3), table) == 3
    assert resolve_weight(ScoredCheck(key="unknown", score=0), table) == DEFAULT_CHECK_WEIGHT


def test_negative_weight_rejected():
    with pytest.raises(ValueError):
        aggregate([ScoredCheck(key="x", score=50, weight=-1)])


def test_scores_are_clamped_into_range():
    checks = [
        ScoredCheck(key="ui", score=250),
        ScoredCheck(key="crud", score=-40),
    ]
    result = aggregate(checks, BROWSER_CATEGORY_WEIGHTS)
    assert 0 <= result <= 100
    # ui=20 at 100, crud=25 at 0
    assert result == round(100 * 20 / 45)


def test_raising_one_score_never_lowers_aggregate():
    base = [ScoredCheck(key=k, score=40) for k in FEATURE_WEIGHTS]
    before = aggregate(base, FEATURE_WEIGHTS)
    for i in range(len(base)):
        bumped = list(base)
        bumped[i] = ScoredCheck(key=base[i].key, score=90)
        assert aggregate(bumped, FEATURE_WEIGHTS) >= before


def test_summarize_applies_threshold_inclusively():
    checks = [ScoredCheck(key="landing_page", score=90)]
    summary = summarize(checks, threshold=90, weights=FEATURE_WEIGHTS)
    assert summary.overall == 90
    assert summary.passes_threshold is True
    assert summary.threshold == 90


def test_aggregate_is_deterministic():
    checks = [ScoredCheck(key=k, score=i * 7 % 100) for i, k in enumerate(FEATURE_WEIGHTS)]
    assert aggregate(checks, FEATURE_WEIGHTS) == aggregate(list(checks), FEATURE_WEIGHTS)
