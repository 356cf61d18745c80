"""
Gatekeeper Actions

Mitigation executors and the surfaces that present them.
"""

from gatekeeper.actions.surface import (
    MitigationSurface,
    PromptMismatchError,
    PromptSurface,
)

__all__ = [
    "MitigationSurface",
    "PromptSurface",
    "PromptMismatchError",
]
