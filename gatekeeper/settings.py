"""
Gatekeeper Settings

Process configuration read from environment variables (a .env file is
loaded by main.py via python-dotenv):

- GATEKEEPER_API_URL: Backend base URL (default: http://localhost:3000/api/widget)
- GATEKEEPER_FAIL_MODE: closed | soft | open (default: closed)
- GATEKEEPER_CHALLENGE_TIMEOUT: Seconds a challenge prompt waits (default: 120)
- GATEKEEPER_VERSION: Engine version reported to the backend (default: 3.0.0)
- REDIS_HOST / REDIS_PORT / REDIS_PASSWORD: see storage.connection
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gatekeeper.schemas.outputs import Decision

logger = logging.getLogger(__name__)


class FailSafeMode(str, Enum):
    """Behaviour when the validation backend cannot be reached."""
    CLOSED = "closed"   # floor the decision at challenge
    SOFT = "soft"       # floor the decision at soft
    OPEN = "open"       # no floor

    @property
    def floor(self) -> Optional[Decision]:
        if self is FailSafeMode.CLOSED:
            return Decision.CHALLENGE
        if self is FailSafeMode.SOFT:
            return Decision.SOFT
        return None


@dataclass(frozen=True)
class Settings:
    api_url: str = "http://localhost:3000/api/widget"
    fail_mode: FailSafeMode = FailSafeMode.CLOSED
    challenge_timeout_s: float = 120.0
    version: str = "3.0.0"

    @classmethod
    def from_env(cls) -> "Settings":
        raw_mode = os.getenv("GATEKEEPER_FAIL_MODE", FailSafeMode.CLOSED.value).strip().lower()
        try:
            fail_mode = FailSafeMode(raw_mode)
        except ValueError:
            logger.warning(f"Unknown GATEKEEPER_FAIL_MODE '{raw_mode}', using closed")
            fail_mode = FailSafeMode.CLOSED

        try:
            timeout = float(os.getenv("GATEKEEPER_CHALLENGE_TIMEOUT", 120))
        except ValueError:
            logger.warning("Invalid GATEKEEPER_CHALLENGE_TIMEOUT, using 120s")
            timeout = 120.0

        return cls(
            api_url=os.getenv("GATEKEEPER_API_URL", cls.api_url).rstrip("/"),
            fail_mode=fail_mode,
            challenge_timeout_s=timeout,
            version=os.getenv("GATEKEEPER_VERSION", cls.version),
        )
