"""Weighted-score policy.

The scoring service supplies the five dimension scores; the combination
into one number and the inclusion decision are computed here so every
report applies the same rule regardless of which model produced the
scores.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .models import WEIGHT_DIMENSIONS, ReplyScores, ReplyVerdict, Weights

# Replies below this goal relevance are never included.
MIN_GOAL_RELEVANCE = 35
# One-liner reactions are never included either.
MIN_SUBSTANTIVENESS = 25


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_weighted_score(scores: ReplyScores, weights: Weights) -> int:
    """Weighted mean of the four quality dimensions, scaled by goal relevance.

    ``goal_relevance`` multiplies rather than adds, so a detailed but
    off-topic reply still lands near zero.
    """
    total_weight = weights.total
    if total_weight <= 0:
        return 0

    weighted_sum = sum(
        getattr(scores, name) * getattr(weights, name) for name in WEIGHT_DIMENSIONS
    )
    base = weighted_sum / total_weight
    return round_half_up(base * scores.goal_relevance / 100)


def passes_inclusion_gate(scores: ReplyScores) -> bool:
    """Local veto on top of the model's own ``to_be_included`` flag."""
    if scores.goal_relevance < MIN_GOAL_RELEVANCE:
        return False
    if scores.substantiveness < MIN_SUBSTANTIVENESS:
        return False
    return bool(scores.to_be_included)


def build_verdict(reply_id: str, scores: ReplyScores, weights: Weights) -> ReplyVerdict:
    return ReplyVerdict(
        reply_id=reply_id,
        scores=scores,
        weighted_score=compute_weighted_score(scores, weights),
        inclusion=passes_inclusion_gate(scores),
    )


def rejected_verdict(reply_id: str) -> ReplyVerdict:
    """Verdict for replies dropped before any scoring call."""
    return ReplyVerdict(reply_id=reply_id, scores=None, weighted_score=0, inclusion=False)
