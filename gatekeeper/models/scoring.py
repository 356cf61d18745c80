"""
Risk Scoring

Weighted combination of component bot-signal scores into a RiskBreakdown,
plus the smoothing helpers used by the orchestrator.

Risk Score:
    total = clamp(sum(w_i * clamp(c_i)) / sum(w_i))

Weights:
    fingerprint 0.25, behavior 0.30, automation 0.20,
    integrity 0.10, velocity 0.10, network 0.05
"""

import logging
import math
from typing import Dict, Mapping, Optional

from gatekeeper.processors import signals
from gatekeeper.processors.features import FeatureSet
from gatekeeper.schemas.outputs import RiskBreakdown, RiskComponents
from gatekeeper.utils.time import now_sec

logger = logging.getLogger(__name__)

WEIGHTS: Dict[str, float] = {
    "fingerprint": 0.25,
    "behavior": 0.30,
    "automation": 0.20,
    "integrity": 0.10,
    "velocity": 0.10,
    "network": 0.05,
}

# Smoothing factor (lower = smoother)
EMA_ALPHA = 0.3

# Server opinion weight when combining with the client score
SERVER_WEIGHT = 0.6


def clamp(value: float) -> float:
    """Clamp to [0, 100]; NaN maps to 0."""
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(100.0, value))


def weighted_score(components: Mapping[str, float], weights: Mapping[str, float] = WEIGHTS) -> float:
    total = 0.0
    weight_sum = 0.0
    for key, weight in weights.items():
        total += clamp(components.get(key, 0.0)) * weight
        weight_sum += weight
    return clamp(total / weight_sum) if weight_sum > 0 else 0.0


def ema(prev: float, curr: float, alpha: float = EMA_ALPHA) -> float:
    """Exponential moving average; the first observation passes through."""
    if prev == 0:
        return clamp(curr)
    return clamp(alpha * curr + (1 - alpha) * prev)


def combine_risk(client: float, server: float) -> float:
    return clamp(client * (1 - SERVER_WEIGHT) + server * SERVER_WEIGHT)


class RiskScorer:
    """
    Stateless scorer: FeatureSet -> RiskBreakdown.

    The network component is always 0 locally; it is filled from the
    server opinion by the orchestrator.
    """

    def __init__(self, weights: Optional[Mapping[str, float]] = None) -> None:
        self.weights = dict(weights or WEIGHTS)

    def score(
        self,
        features: FeatureSet,
        last_assessed_at: Optional[float] = None,
        now: Optional[float] = None,
    ) -> RiskBreakdown:
        """
        Args:
            features: Extracted FeatureSet
            last_assessed_at: Epoch seconds of the previous assessment, if any
            now: Epoch seconds (defaults to the wall clock)
        """
        now = now_sec() if now is None else now
        env = features.environment

        fingerprint = signals.analyze_fingerprint(env)
        behavior = signals.analyze_behavior(features)
        automation = signals.analyze_automation(env)
        integrity = signals.analyze_integrity(env)
        velocity = signals.analyze_velocity(last_assessed_at, now)

        components = RiskComponents(
            fingerprint=clamp(fingerprint.score),
            behavior=clamp(behavior.score),
            automation=clamp(automation.score),
            integrity=clamp(integrity.score),
            velocity=clamp(velocity.score),
            network=0.0,
        )
        reasons = (
            fingerprint.reasons + behavior.reasons + integrity.reasons + velocity.reasons
        )
        total = weighted_score(components.model_dump(), self.weights)

        logger.debug(f"Risk {total:.0f} | reasons: {', '.join(reasons) or 'none'}")
        return RiskBreakdown(total=total, components=components, reasons=reasons)
