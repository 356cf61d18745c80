"""
Identifier masking for log output.
"""

from typing import Optional


def mask_id(value: Optional[str]) -> str:
    """Mask an identifier as ``abcd...xyz``; short or missing values become ``***``."""
    if not value or len(value) < 8:
        return "***"
    return f"{value[:4]}...{value[-3:]}"


def display_id(value: Optional[str], mask_pii: bool = True) -> str:
    """Identifier as it may appear in logs under the tenant's privacy setting."""
    if mask_pii:
        return mask_id(value)
    return value or "***"
