"""
Scoring Aggregator
==================
Combines weighted named checks into a single integer percentage.

    overall = round(100 * Σ(score_i / 100 * weight_i) / Σ weight_i)

Weight resolution for each check (first match wins):
    1. the check's own ``weight``
    2. the context's weight table, keyed by the check's category / feature
    3. DEFAULT_CHECK_WEIGHT (5)

Contract:
    - Pure and deterministic: same checks + same table → same integer.
    - Scores are clamped to [0, 100], so the result is always within [0, 100].
    - Increasing one check's score never lowers the result (weights >= 0).
    - Empty input, or a zero total weight, yields 0 and never passes.
    - Rounding is half-up (55.5 → 56), not Python's banker's rounding.

Two contexts exist: pre-deploy feature presence (FEATURE_WEIGHTS) and
post-deploy browser checks (BROWSER_CATEGORY_WEIGHTS). The differentiation
score uses the same threshold test with a different bar (60) and inverted
meaning: higher is safer, not a better clone.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from cloneforge.core.constants import DEFAULT_CHECK_WEIGHT


@dataclass(frozen=True)
class ScoredCheck:
    """One named check. ``key`` is the feature or category used for weighting."""
    key: str
    score: float
    weight: Optional[float] = None


@dataclass(frozen=True)
class ScoreSummary:
    overall: int
    passes_threshold: bool
    threshold: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_weight(
    check: ScoredCheck,
    weights: Mapping[str, float],
    default_weight: float = DEFAULT_CHECK_WEIGHT,
) -> float:
    if check.weight is not None:
        weight = check.weight
    else:
        weight = weights.get(check.key, default_weight)
    if weight < 0:
        raise ValueError(f"Negative weight {weight} for check '{check.key}'")
    return weight


def aggregate(
    checks: Iterable[ScoredCheck],
    weights: Optional[Mapping[str, float]] = None,
    default_weight: float = DEFAULT_CHECK_WEIGHT,
) -> int:
    """Weighted percentage of ``checks``; 0 for an empty set."""
    table = weights or {}
    total_weight = 0.0
    weighted = 0.0
    for check in checks:
        weight = resolve_weight(check, table, default_weight)
        score = min(100.0, max(0.0, float(check.score)))
        total_weight += weight
        weighted += (score / 100.0) * weight

    if total_weight <= 0:
        return 0
    return _round_half_up(100.0 * weighted / total_weight)


def passes_threshold(score: int, threshold: int) -> bool:
    return score >= threshold


def summarize(
    checks: Iterable[ScoredCheck],
    threshold: int,
    weights: Optional[Mapping[str, float]] = None,
    default_weight: float = DEFAULT_CHECK_WEIGHT,
) -> ScoreSummary:
    """Aggregate and apply the threshold. An empty or weightless set never passes."""
    checks = list(checks)
    table = weights or {}
    overall = aggregate(checks, table, default_weight)
    weighted = any(resolve_weight(c, table, default_weight) > 0 for c in checks)
    passed = weighted and passes_threshold(overall, threshold)
    return ScoreSummary(overall=overall, passes_threshold=passed, threshold=threshold)
