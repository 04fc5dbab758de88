from __future__ import annotations

import math


def score_to_probability(score: float, midpoint: float = 50.0, scale: float = 20.0) -> float:
    """Map a raw additive score onto [0, 100] with a logistic curve.

    Presentation only: consensus and escalation keep working on the raw score.
    """
    if scale <= 0:
        raise ValueError("scale must be positive")
    z = (float(score) - float(midpoint)) / float(scale)
    # Clamp to avoid overflow in exp for extreme scores.
    z = max(-60.0, min(60.0, z))
    return round(100.0 / (1.0 + math.exp(-z)), 1)
