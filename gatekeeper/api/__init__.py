"""
Gatekeeper Backend API

Outbound contracts: policy config, validation and heartbeat.
"""

from gatekeeper.api.client import BackendClient
from gatekeeper.api.heartbeat import send_heartbeat
from gatekeeper.api.validate import build_validate_payload, validate

__all__ = [
    "BackendClient",
    "send_heartbeat",
    "validate",
    "build_validate_payload",
]
