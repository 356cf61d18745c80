"""
Widget tenant credentials.

A page embeds either a signed token (``payload.signature`` where payload is
base64url JSON with ``tid``, ``exp`` and ``v``, optionally ``dbg`` and
``env``) or a legacy raw tenant ID (UUID or CUID). Signature verification
belongs to the backend; only the payload is read here.
"""

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from gatekeeper.utils.masking import mask_id
from gatekeeper.utils.time import is_expired, is_in_grace

logger = logging.getLogger(__name__)

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$",
    re.IGNORECASE,
)
_CUID_RE = re.compile(r"^c[a-z0-9]{20,30}$")


@dataclass(frozen=True)
class TokenPayload:
    tid: str
    exp: int
    v: int
    dbg: bool = False
    env: Optional[str] = None


def base64url_decode(value: str) -> Optional[str]:
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None


def parse_token(token: Optional[str]) -> Optional[TokenPayload]:
    """Decode a ``payload.signature`` token; None when malformed or incomplete."""
    if not token or not isinstance(token, str):
        return None
    parts = token.split(".")
    if len(parts) != 2:
        return None
    decoded = base64url_decode(parts[0])
    if decoded is None:
        return None
    try:
        data = json.loads(decoded)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or not data.get("tid") or not data.get("exp") or not data.get("v"):
        return None
    try:
        return TokenPayload(
            tid=str(data["tid"]),
            exp=int(data["exp"]),
            v=int(data["v"]),
            dbg=bool(data.get("dbg", False)),
            env=data.get("env"),
        )
    except (TypeError, ValueError):
        return None


def is_legacy_tenant_id(value: Optional[str]) -> bool:
    """UUID (dashes optional) or CUID, never containing a dot."""
    if not value or "." in value:
        return False
    return bool(_UUID_RE.match(value) or _CUID_RE.match(value))


def token_usable(payload: TokenPayload, now: Optional[float] = None) -> bool:
    """Accept unexpired tokens and tokens within the one-hour grace period."""
    if not is_expired(payload.exp, now):
        return True
    if is_in_grace(payload.exp, now):
        logger.warning(f"Tenant token for {mask_id(payload.tid)} expired, within grace period")
        return True
    return False
