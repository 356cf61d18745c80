"""
Gatekeeper Models

Risk scoring and the threshold rule set.
"""

from gatekeeper.models.rules import apply_hysteresis, evaluate
from gatekeeper.models.scoring import RiskScorer, clamp, combine_risk, ema, weighted_score

__all__ = [
    "RiskScorer",
    "clamp",
    "combine_risk",
    "ema",
    "weighted_score",
    "evaluate",
    "apply_hysteresis",
]
