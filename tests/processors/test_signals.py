"""
Signal Analysis Unit Tests

Tests the per-component bot signal scores and their reason codes.
"""

import pytest

from gatekeeper.processors.features import FeatureSet
from gatekeeper.processors.signals import (
    analyze_automation,
    analyze_behavior,
    analyze_fingerprint,
    analyze_integrity,
    analyze_velocity,
    is_automation_user_agent,
)

from tests.conftest import headless_environment, human_environment


# =============================================================================
# User Agent
# =============================================================================

class TestUserAgent:

    @pytest.mark.parametrize("ua", [
        "Mozilla/5.0 HeadlessChrome/124.0.0.0",
        "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
        "python-selenium/4.1",
        "Puppeteer",
    ])
    def test_automation_markers(self, ua):
        assert is_automation_user_agent(ua)

    def test_regular_browser(self):
        assert not is_automation_user_agent(human_environment().user_agent)

    def test_empty_user_agent(self):
        assert not is_automation_user_agent("")


# =============================================================================
# Environment Components
# =============================================================================

class TestFingerprint:
    """Headless environments accumulate fingerprint reasons."""

    def test_human_environment_is_clean(self):
        result = analyze_fingerprint(human_environment())
        assert result.score == 0.0
        assert result.reasons == ()

    def test_headless_environment(self):
        result = analyze_fingerprint(headless_environment())
        assert result.score == 100.0
        for reason in ("webdriver_present", "no_plugins", "automation_user_agent",
                       "missing_canvas", "missing_webgl", "utc_timezone"):
            assert reason in result.reasons

    def test_implausible_cpu_count(self):
        result = analyze_fingerprint(human_environment(hardware_concurrency=128))
        assert result.reasons == ("implausible_cpu_count",)
        assert result.score == 10.0


class TestAutomation:

    def test_webdriver_and_ua(self):
        assert analyze_automation(headless_environment()).score == 100.0

    def test_webdriver_only(self):
        assert analyze_automation(human_environment(webdriver=True)).score == 60.0

    def test_clean(self):
        assert analyze_automation(human_environment()).score == 0.0


class TestIntegrity:

    def test_all_anomalies(self):
        env = human_environment(storage_available=False, cookie_enabled=False, csp_blocked=True)
        result = analyze_integrity(env)
        assert result.score == 45.0
        assert result.reasons == ("storage_unavailable", "integrity_cookies_disabled", "csp_blocked")

    def test_clean(self):
        assert analyze_integrity(human_environment()).score == 0.0


# =============================================================================
# Behavior
# =============================================================================

class TestBehavior:
    """Interaction pattern reasons."""

    def test_idle_page_without_interaction(self):
        features = FeatureSet(session_duration=40.0, time_to_first_interaction=40.0)
        result = analyze_behavior(features)
        assert "no_pointer_movement" in result.reasons
        assert "no_keystrokes" in result.reasons
        assert "no_idle_gaps" in result.reasons
        assert "instant_first_interaction" not in result.reasons

    def test_scripted_input(self):
        features = FeatureSet(
            session_duration=10.0,
            time_to_first_interaction=0.01,
            no_pointer_movement=False,
            mouse_movements=40,
            linear_movement=True,
            keystrokes=20,
            keystroke_dwell_std=0.5,
            micro_timing_entropy=0.1,
        )
        result = analyze_behavior(features)
        assert set(result.reasons) >= {
            "linear_movement",
            "instant_first_interaction",
            "mechanical_timing",
            "uniform_key_dwell",
            "straight_pointer_path",
        }
        assert result.score == 85.0

    def test_injected_noise(self):
        features = FeatureSet(session_duration=1.0, micro_timing_entropy=0.9, no_pointer_movement=False)
        result = analyze_behavior(features)
        assert result.reasons == ("injected_timing_noise",)
        assert result.score == 25.0

    def test_fresh_page_is_quiet(self):
        assert analyze_behavior(FeatureSet()).reasons == ()


class TestVelocity:

    def test_rapid_reassessment(self):
        result = analyze_velocity(100.0, 101.0)
        assert result.score == 30.0
        assert result.reasons == ("rapid_reassessment",)

    def test_first_assessment(self):
        assert analyze_velocity(None, 101.0).score == 0.0

    def test_spaced_assessments(self):
        assert analyze_velocity(100.0, 103.0).score == 0.0
