"""Constitution check on user input and final output."""

from __future__ import annotations

import logging

from agentura.agents import AgentKind
from agentura.gateway import ChatTurn, RemoteModelGateway
from agentura.utils.error_handler import AgenturaError

LOGGER = logging.getLogger(__name__)

REFUSAL_TEXT = "I cannot fulfill this request as it violates my operational constraints."


class ConstitutionGuard:
    """Classifies text with the Verifier agent.

    A failed check call lets the text through and logs a warning, so an
    outage of the verifier model does not block every request.
    """

    def __init__(self, gateway: RemoteModelGateway, *, enabled: bool = True):
        self._gateway = gateway
        self.enabled = enabled

    async def is_allowed(self, text: str) -> bool:
        if not self.enabled or not text.strip():
            return True
        try:
            verdict = await self._gateway.generate_text(AgentKind.VERIFIER, [ChatTurn(role="user", text=text)])
        except AgenturaError as e:
            LOGGER.warning(f"Constitution check unavailable, allowing text: {e}")
            return True
        allowed = "VIOLATION" not in verdict.upper()
        if not allowed:
            LOGGER.warning(f"Constitution violation detected: {text[:80]!r}")
        return allowed
