"""
Signal Analysis

Turns the environment snapshot and the FeatureSet into per-component bot
signal scores with readable reason codes (anomaly vectors).

Components:
- fingerprint: environment inconsistencies typical of headless browsers
- behavior: interaction patterns typical of scripted input
- automation: direct automation markers (webdriver, automation UA)
- integrity: storage/cookie/CSP anomalies
- velocity: assessments requested too quickly
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from user_agents import parse as parse_user_agent

from gatekeeper.processors.features import FeatureSet
from gatekeeper.schemas.inputs import EnvironmentSnapshot

# User agent fragments left by automation frameworks and crawlers
AUTOMATION_UA_MARKERS: Tuple[str, ...] = (
    "headless",
    "phantom",
    "selenium",
    "puppeteer",
    "bot",
    "crawler",
    "spider",
)

# Minimum length of a real canvas/WebGL fingerprint
MIN_FINGERPRINT_LENGTH = 5

# Assessments closer than this (seconds) raise the velocity component
MIN_ASSESS_INTERVAL_SEC = 2.0


@dataclass(frozen=True)
class SignalResult:
    score: float
    reasons: Tuple[str, ...] = ()


def _capped(score: float, reasons: List[str]) -> SignalResult:
    return SignalResult(score=max(0.0, min(100.0, score)), reasons=tuple(reasons))


def is_automation_user_agent(user_agent: str) -> bool:
    """Automation fragment in the UA, or a UA the parser classifies as a bot."""
    lowered = user_agent.lower()
    if any(marker in lowered for marker in AUTOMATION_UA_MARKERS):
        return True
    if not user_agent:
        return False
    return bool(parse_user_agent(user_agent).is_bot)


def analyze_fingerprint(env: EnvironmentSnapshot) -> SignalResult:
    reasons: List[str] = []
    score = 0.0

    if env.webdriver:
        reasons.append("webdriver_present")
        score += 50
    if env.plugins == 0:
        reasons.append("no_plugins")
        score += 20
    if is_automation_user_agent(env.user_agent):
        reasons.append("automation_user_agent")
        score += 40
    if not env.languages:
        reasons.append("no_languages")
        score += 15
    if env.hardware_concurrency == 0 or env.hardware_concurrency > 32:
        reasons.append("implausible_cpu_count")
        score += 10
    if len(env.canvas) < MIN_FINGERPRINT_LENGTH:
        reasons.append("missing_canvas")
        score += 25
    if len(env.webgl) < MIN_FINGERPRINT_LENGTH:
        reasons.append("missing_webgl")
        score += 20
    if not env.cookie_enabled:
        reasons.append("cookies_disabled")
        score += 10
    if env.timezone == "UTC" or env.timezone_offset == 0:
        reasons.append("utc_timezone")
        score += 5

    return _capped(score, reasons)


def analyze_behavior(f: FeatureSet) -> SignalResult:
    reasons: List[str] = []
    score = 0.0
    dur = f.session_duration

    if f.no_pointer_movement and dur > 2:
        reasons.append("no_pointer_movement")
        score += 15
    if f.linear_movement:
        reasons.append("linear_movement")
        score += 20
    if f.keystrokes == 0 and dur > 5:
        reasons.append("no_keystrokes")
        score += 5
    if f.micro_timing_entropy > 0.85:
        reasons.append("injected_timing_noise")
        score += 25
    if f.micro_timing_entropy < 0.15 and dur > 2:
        reasons.append("mechanical_timing")
        score += 20
    if f.time_to_first_interaction < 0.1 and dur > 1:
        reasons.append("instant_first_interaction")
        score += 15
    if f.idle_gaps == 0 and dur > 30:
        reasons.append("no_idle_gaps")
        score += 10
    if f.keystroke_dwell_std < 5 and f.keystrokes > 10:
        reasons.append("uniform_key_dwell")
        score += 15
    if f.mouse_curvature_avg < 0.001 and f.mouse_movements > 20:
        reasons.append("straight_pointer_path")
        score += 15

    return _capped(score, reasons)


def analyze_automation(env: EnvironmentSnapshot) -> SignalResult:
    score = 0.0
    if env.webdriver:
        score += 60
    if is_automation_user_agent(env.user_agent):
        score += 40
    # Reasons already reported by the fingerprint component
    return _capped(score, [])


def analyze_integrity(env: EnvironmentSnapshot) -> SignalResult:
    reasons: List[str] = []
    score = 0.0
    if not env.storage_available:
        reasons.append("storage_unavailable")
        score += 20
    if not env.cookie_enabled:
        reasons.append("integrity_cookies_disabled")
        score += 15
    if env.csp_blocked:
        reasons.append("csp_blocked")
        score += 10
    return _capped(score, reasons)


def analyze_velocity(last_assessed_at: Optional[float], now: float) -> SignalResult:
    """Both timestamps in epoch seconds."""
    if last_assessed_at and now - last_assessed_at < MIN_ASSESS_INTERVAL_SEC:
        return SignalResult(score=30.0, reasons=("rapid_reassessment",))
    return SignalResult(score=0.0)
