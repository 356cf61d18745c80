"""
Mitigation Surfaces

A MitigationSurface is whatever presents prompts and block screens to the
visitor. The engine only asks for slider values and renders outcomes; the
visual layer is someone else's concern.

PromptSurface parks each prompt on an asyncio Future until the page
answers it through the HTTP service. Proof-of-work prompts are solved by
the page; the engine only verifies the returned solution.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from gatekeeper.schemas.inputs import PromptAnswer
from gatekeeper.schemas.outputs import PromptView

logger = logging.getLogger(__name__)


class PromptMismatchError(Exception):
    """Raised when an answer does not match the pending prompt."""
    pass


class MitigationSurface(ABC):
    """Presentation boundary for interactive mitigations."""

    @abstractmethod
    async def ask(self, prompt: PromptView, timeout_s: Optional[float]) -> Optional[int]:
        """
        Present ``prompt`` and return the submitted slider value.

        ``timeout_s`` None waits indefinitely. Returns None when the prompt
        went unanswered.
        """

    async def solve(self, prompt: PromptView, timeout_s: Optional[float]) -> Optional[str]:
        """
        Hand a proof-of-work ``prompt`` to the page and return its solution.

        Surfaces without a compute channel return None.
        """
        return None

    @abstractmethod
    def render_block(self, reason: str) -> None:
        """Show the terminal block screen."""

    def notify(self, message: str) -> None:
        """Non-blocking notice (toast). Optional for surfaces."""
        logger.debug(f"Notice: {message}")

    def close(self) -> None:
        """Release anything still waiting on the visitor."""


def new_prompt(kind: str, target: int, attempt: int = 1, retry: bool = False) -> PromptView:
    return PromptView(
        prompt_id=uuid.uuid4().hex[:12],
        kind=kind,
        target=target,
        attempt=attempt,
        retry=retry,
    )


def new_pow_prompt(difficulty: int) -> PromptView:
    return PromptView(
        prompt_id=uuid.uuid4().hex[:12],
        kind="pow",
        nonce=uuid.uuid4().hex,
        difficulty=difficulty,
    )


class PromptSurface(MitigationSurface):
    """
    Future-based surface for the HTTP service: one prompt at a time.
    """

    def __init__(self) -> None:
        self._pending: Optional[Tuple[PromptView, asyncio.Future]] = None
        self.blocked_reason: Optional[str] = None
        self.notices: List[str] = []

    @property
    def pending(self) -> Optional[PromptView]:
        return self._pending[0] if self._pending else None

    async def ask(self, prompt: PromptView, timeout_s: Optional[float]) -> Optional[int]:
        answer = await self._wait(prompt, timeout_s)
        return answer.value if answer is not None else None

    async def solve(self, prompt: PromptView, timeout_s: Optional[float]) -> Optional[str]:
        answer = await self._wait(prompt, timeout_s)
        return answer.solution if answer is not None else None

    async def _wait(self, prompt: PromptView, timeout_s: Optional[float]) -> Optional[PromptAnswer]:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending = (prompt, future)
        try:
            if timeout_s is None:
                return await future
            return await asyncio.wait_for(future, timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.info(f"Prompt {prompt.prompt_id} unanswered after {timeout_s:.0f}s")
            return None
        finally:
            if self._pending is not None and self._pending[1] is future:
                self._pending = None

    def answer(self, answer: PromptAnswer) -> None:
        """Resolve the pending prompt. Raises PromptMismatchError otherwise."""
        if self._pending is None:
            raise PromptMismatchError("No prompt is pending")
        prompt, future = self._pending
        if prompt.prompt_id != answer.prompt_id:
            raise PromptMismatchError(f"Prompt {answer.prompt_id} is not pending")
        if future.done():
            raise PromptMismatchError(f"Prompt {answer.prompt_id} already answered")
        future.set_result(answer)

    def render_block(self, reason: str) -> None:
        self.blocked_reason = reason

    def notify(self, message: str) -> None:
        self.notices.append(message)

    def close(self) -> None:
        if self._pending is not None:
            self._pending[1].cancel()
            self._pending = None
