"""Weighted outcome sampling."""

from __future__ import annotations

import random
from collections.abc import Sequence

from wargame.models import OutcomeCandidate


def sample_weighted(
    candidates: Sequence[OutcomeCandidate],
    rng: random.Random | None = None,
) -> str:
    """Pick one outcome with probability proportional to its weight.

    Weights are normalised, one uniform value r in [0, 1) is drawn, and the
    first candidate whose cumulative weight reaches r wins. Rounding can
    leave the final cumulative sum just below r; the last candidate is
    returned in that case, so any non-empty list yields an outcome.

    Pass a seeded `random.Random` for reproducible draws.
    """
    if not candidates:
        raise ValueError("Cannot sample from an empty outcome list")
    total = sum(c.weight for c in candidates)
    if total <= 0:
        raise ValueError("Outcome weights must sum to a positive number")

    r = (rng or random).random()
    cumulative = 0.0
    for candidate in candidates:
        cumulative += candidate.weight / total
        if cumulative >= r:
            return candidate.outcome
    return candidates[-1].outcome
