"""
Risk Scoring Unit Tests

Tests clamp / weighted_score / ema invariants and RiskScorer output for
clean and headless environments.
"""

import math

import pytest

from gatekeeper.models.scoring import (
    EMA_ALPHA,
    WEIGHTS,
    RiskScorer,
    clamp,
    combine_risk,
    ema,
    weighted_score,
)
from gatekeeper.processors.features import FeatureExtractor

from tests.conftest import headless_environment, make_sample


# =============================================================================
# Helpers
# =============================================================================

class TestClamp:

    @pytest.mark.parametrize("value,expected", [
        (-5.0, 0.0),
        (0.0, 0.0),
        (42.5, 42.5),
        (100.0, 100.0),
        (250.0, 100.0),
        (math.inf, 100.0),
        (-math.inf, 0.0),
        (math.nan, 0.0),
    ])
    def test_clamp(self, value, expected):
        assert clamp(value) == expected

    def test_clamp_is_idempotent(self):
        for value in (-3.0, 17.2, 180.0):
            assert clamp(clamp(value)) == clamp(value)


class TestWeightedScore:

    def test_all_zero(self):
        assert weighted_score({k: 0.0 for k in WEIGHTS}) == 0.0

    def test_all_hundred(self):
        assert weighted_score({k: 100.0 for k in WEIGHTS}) == pytest.approx(100.0)

    def test_missing_components_count_as_zero(self):
        assert weighted_score({"behavior": 100.0}) == pytest.approx(30.0)

    def test_out_of_range_components_are_clamped(self):
        assert weighted_score({k: 500.0 for k in WEIGHTS}) == pytest.approx(100.0)

    def test_zero_weights(self):
        assert weighted_score({"behavior": 80.0}, {"behavior": 0.0}) == 0.0


class TestEma:

    def test_first_observation_passes_through(self):
        assert ema(0.0, 73.0) == 73.0

    def test_smoothing(self):
        assert ema(50.0, 100.0) == pytest.approx(EMA_ALPHA * 100 + (1 - EMA_ALPHA) * 50)

    def test_converges(self):
        value = 10.0
        for _ in range(60):
            value = ema(value, 80.0)
        assert value == pytest.approx(80.0, abs=0.01)

    def test_combine_risk_weights_server(self):
        assert combine_risk(10.0, 90.0) == pytest.approx(58.0)


# =============================================================================
# RiskScorer
# =============================================================================

class TestRiskScorer:

    def test_clean_session_scores_low(self):
        features = FeatureExtractor().extract(make_sample())
        risk = RiskScorer().score(features, now=1000.0)
        assert risk.total == 0.0
        assert risk.components.network == 0.0
        assert risk.reasons == ()

    def test_headless_session_scores_high(self):
        features = FeatureExtractor().extract(make_sample(environment=headless_environment()))
        risk = RiskScorer().score(features, now=1000.0)
        assert risk.components.fingerprint == 100.0
        assert risk.components.automation == 100.0
        assert risk.total == pytest.approx(45.0)
        assert "webdriver_present" in risk.reasons

    def test_rapid_reassessment_raises_velocity(self):
        features = FeatureExtractor().extract(make_sample())
        risk = RiskScorer().score(features, last_assessed_at=999.5, now=1000.0)
        assert risk.components.velocity == 30.0
        assert risk.total == pytest.approx(3.0)
        assert "rapid_reassessment" in risk.reasons

    def test_total_always_in_range(self):
        features = FeatureExtractor().extract(make_sample(environment=headless_environment()))
        risk = RiskScorer().score(features, last_assessed_at=999.9, now=1000.0)
        assert 0.0 <= risk.total <= 100.0
