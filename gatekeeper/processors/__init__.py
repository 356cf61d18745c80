"""
Gatekeeper Processors

Public exports for telemetry buffering and feature engineering.
"""

from gatekeeper.processors.buffer import TelemetryBuffer
from gatekeeper.processors.features import FeatureExtractor, FeatureSet

__all__ = [
    "TelemetryBuffer",
    "FeatureExtractor",
    "FeatureSet",
]
