"""
Rule Evaluator

Maps a smoothed risk score to a Decision using the policy thresholds.

Progressive escalation:
    allow -> soft -> challenge -> hard_challenge -> bunker/block

Overrides (checked first):
    kill switch -> allow
    monitor mode -> allow
    bunker enabled and score >= bunker threshold -> bunker
"""

from typing import Optional

from gatekeeper.models.scoring import clamp
from gatekeeper.schemas.outputs import Decision
from gatekeeper.schemas.policy import DEFAULT_THRESHOLDS, Policy, Thresholds

# Extra score required to escalate past soft, keyed by the previous decision
HYSTERESIS_MARGINS = {
    Decision.ALLOW: 5.0,
    Decision.SOFT: 3.0,
}


def evaluate(score: float, policy: Optional[Policy] = None) -> Decision:
    """Pure, total mapping from score to decision. NaN scores count as 0."""
    score = clamp(score)
    t = policy.thresholds if policy is not None else DEFAULT_THRESHOLDS

    if policy is not None and policy.kill_switch:
        return Decision.ALLOW
    if policy is not None and policy.is_monitor:
        return Decision.ALLOW

    bunker_enabled = policy is not None and policy.bunker_policy.enabled
    if bunker_enabled and score >= t.bunker:
        return Decision.BUNKER

    if score < t.allow:
        return Decision.ALLOW
    if score < t.soft:
        return Decision.SOFT
    if score < t.challenge:
        return Decision.CHALLENGE
    if score < t.bunker:
        return Decision.HARD_CHALLENGE
    return Decision.BLOCK


def apply_hysteresis(
    previous: Optional[Decision],
    proposed: Decision,
    score: float,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Decision:
    """
    Hold a session coming from allow/soft at soft while the score stays
    within the margin above the challenge boundary (``thresholds.soft``).
    """
    margin = HYSTERESIS_MARGINS.get(previous) if previous is not None else None
    if margin is None:
        return proposed
    if proposed not in (Decision.CHALLENGE, Decision.HARD_CHALLENGE):
        return proposed
    if score < thresholds.soft + margin:
        return Decision.SOFT
    return proposed
