"""
Gatekeeper Core

Central module exports for the Gatekeeper bot-mitigation decision engine.
"""

from gatekeeper.orchestrator import DecisionOrchestrator
from gatekeeper.service import SessionService

__version__ = "3.0.0"

__all__ = [
    "DecisionOrchestrator",
    "SessionService",
]
