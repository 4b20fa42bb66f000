"""Prompt refinement from a critique."""

from __future__ import annotations

import logging
import re

from agentura.agents import AgentKind
from agentura.gateway import ChatTurn, RemoteModelGateway
from agentura.utils.error_handler import ReflexionError
from agentura.utils.json_utils import strip_code_fences

LOGGER = logging.getLogger(__name__)

_LABEL = re.compile(r"^\s*(?:\*\*)?(?:new|improved|revised|refined)?\s*prompt(?:\*\*)?\s*:(?:\*\*)?\s*", re.IGNORECASE)
_QUOTES = ('"', "'", "“", "”")


def clean_prompt(text: str) -> str:
    """Strip fences, a leading label and wrapping quotes from a model-written prompt."""

    cleaned = strip_code_fences(text or "").strip()
    cleaned = _LABEL.sub("", cleaned, count=1).strip()
    while len(cleaned) >= 2 and cleaned[0] in _QUOTES and cleaned[-1] in _QUOTES:
        cleaned = cleaned[1:-1].strip()
    return cleaned


class PromptRefiner:
    def __init__(self, gateway: RemoteModelGateway):
        self._gateway = gateway

    async def refine(self, original_prompt: str, failed_output: str, critique: str) -> str:
        """Return a replacement prompt.

        Raises:
            ReflexionError: the model returned nothing usable.
        """
        text = await self._gateway.generate_text(
            AgentKind.RETRY,
            [
                ChatTurn(
                    role="user",
                    text=(
                        f"Original prompt:\n{original_prompt}\n\n"
                        f"Output:\n{failed_output}\n\n"
                        f"Critique:\n{critique}"
                    ),
                )
            ],
        )
        prompt = clean_prompt(text)
        if not prompt:
            raise ReflexionError("Refinement returned an empty prompt", user_message="Could not produce an improved prompt.")
        LOGGER.info(f"Refined prompt: {prompt[:120]}")
        return prompt
