"""
Backend Validation

POST /validate with the environment fingerprint, a behavior summary and
the local risk breakdown. The server answers with its own opinion:
{action, token?, expiresIn?, serverRisk?, flags?, reason?, score?}.

An unreachable or malformed response is None, never an exception.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from gatekeeper.api.client import BackendClient
from gatekeeper.processors.features import FeatureSet
from gatekeeper.schemas.outputs import RiskBreakdown, ValidationResult
from gatekeeper.schemas.policy import SAFE_DEFAULTS
from gatekeeper.session import SessionState

logger = logging.getLogger(__name__)


def build_validate_payload(
    session: SessionState,
    features: FeatureSet,
    risk: RiskBreakdown,
) -> Dict[str, Any]:
    cfg = session.config
    if cfg.token:
        auth: Dict[str, str] = {"token": cfg.token}
    elif cfg.tenant_id:
        auth = {"tenantId": cfg.tenant_id}
    else:
        auth = {}

    payload: Dict[str, Any] = {
        "fingerprint": features.environment.model_dump(mode="json"),
        "behaviorSummary": features.summary(),
        "riskBreakdown": risk.model_dump(mode="json"),
        "url": cfg.url,
        "referrer": cfg.referrer,
        "auth": auth,
    }
    if cfg.widget_id:
        payload["widgetId"] = cfg.widget_id
    return payload


async def validate(
    client: BackendClient,
    session: SessionState,
    features: FeatureSet,
    risk: RiskBreakdown,
) -> Optional[ValidationResult]:
    """Ask the backend for its opinion within policy.timeouts.validateMs."""
    policy = session.policy or SAFE_DEFAULTS
    data = await client.safe_fetch(
        "POST",
        "/validate",
        timeout_ms=policy.timeouts.validate_ms,
        json=build_validate_payload(session, features, risk),
    )
    if data is None:
        logger.info("Backend unreachable, no server opinion")
        return None
    try:
        result = ValidationResult.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Malformed validation response: {e.error_count()} errors")
        return None

    logger.info(
        f"Server response: action={result.action} "
        f"serverRisk={result.server_risk if result.server_risk is not None else 'n/a'}"
    )
    return result
