"""Remote model gateway: request assembly, streaming aggregation and retries."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from agentura.agents import AgentKind, AgentRegistry
from agentura.agents.prompts import PERSONAS
from agentura.config import GatewaySettings
from agentura.models import ModelRegistry
from agentura.tools.declarations import ToolSpec
from agentura.utils.error_handler import (
    StructuredOutputError,
    invocation_error_type,
    is_transient_error,
    parse_api_error_message,
)
from agentura.utils.json_utils import extract_json
from agentura.utils.logging_utils import log_prompt

from .interfaces import ChatTurn, GenerationRequest, GenerationResult, GenerationService
from .sources import extract_sources, merge_sources

LOGGER = logging.getLogger(__name__)

TextListener = Callable[[str], None]


@dataclass
class RetryPolicy:
    """Bounded exponential backoff for remote calls."""

    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    backoff_max_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            backoff_base_seconds=settings.backoff_base_seconds,
            backoff_multiplier=settings.backoff_multiplier,
            backoff_max_seconds=settings.backoff_max_seconds,
        )

    def delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        return min(self.backoff_base_seconds * self.backoff_multiplier**attempt, self.backoff_max_seconds)


class RemoteModelGateway:
    """Single entry point for every agent invocation.

    A failed stream is retried only while nothing has been published to the
    caller yet, so streamed text observed by listeners only ever grows.
    """

    def __init__(
        self,
        service: GenerationService,
        agent_registry: AgentRegistry,
        model_registry: ModelRegistry,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        persona: str = "default",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._service = service
        self.agents = agent_registry
        self._models = model_registry
        self.retry_policy = retry_policy or RetryPolicy()
        self.persona = persona
        self._sleep = sleep

    def build_request(
        self,
        kind: AgentKind,
        turns: Sequence[ChatTurn],
        *,
        template_values: Optional[Dict[str, Any]] = None,
        instruction: Optional[str] = None,
        tools: Optional[Iterable[ToolSpec]] = None,
    ) -> GenerationRequest:
        definition = self.agents.get(kind)
        values: Dict[str, Any] = {
            "persona": PERSONAS.get(self.persona, "") if definition.user_facing else "",
        }
        values.update(template_values or {})
        system = instruction if instruction is not None else definition.render_instruction(**values)

        return GenerationRequest(
            agent=kind.value,
            model_id=self._models.model_id(definition.model_slot),
            system_instruction=system.strip(),
            turns=list(turns),
            tools=list(definition.tools if tools is None else tools),
            json_mode=definition.config.json_mode,
            temperature=definition.config.temperature,
            max_tokens=definition.config.max_tokens,
        )

    async def stream(
        self,
        kind: AgentKind,
        turns: Sequence[ChatTurn],
        *,
        on_text: Optional[TextListener] = None,
        template_values: Optional[Dict[str, Any]] = None,
        instruction: Optional[str] = None,
        tools: Optional[Iterable[ToolSpec]] = None,
    ) -> GenerationResult:
        """Run one generation, publishing the accumulated text after every chunk."""

        request = self.build_request(kind, turns, template_values=template_values, instruction=instruction, tools=tools)
        log_prompt(LOGGER, kind.value, request.system_instruction)

        attempt = 0
        while True:
            parts: List[str] = []
            result = GenerationResult()
            published = False
            try:
                async for chunk in self._service.stream(request):
                    if chunk.text:
                        parts.append(chunk.text)
                        published = True
                        if on_text is not None:
                            on_text("".join(parts))
                    if chunk.function_calls:
                        result.function_calls.extend(chunk.function_calls)
                    if chunk.grounding_metadata:
                        result.sources = merge_sources(result.sources, extract_sources(chunk.grounding_metadata))
                result.text = "".join(parts)
                return result
            except asyncio.CancelledError:
                raise
            except Exception as error:
                attempt += 1
                if published or attempt >= self.retry_policy.max_attempts or not is_transient_error(error):
                    LOGGER.error(
                        f"{kind.value} generation failed (attempt {attempt}/{self.retry_policy.max_attempts}): "
                        f"{type(error).__name__}: {error}"
                    )
                    raise invocation_error_type(error)(
                        f"{kind.value} generation failed: {error}",
                        user_message=parse_api_error_message(error),
                    ) from error

                delay = self.retry_policy.delay(attempt - 1)
                LOGGER.warning(
                    f"{kind.value} transient failure ({type(error).__name__}), "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{self.retry_policy.max_attempts})"
                )
                await self._sleep(delay)

    async def generate_text(self, kind: AgentKind, turns: Sequence[ChatTurn], **kwargs: Any) -> str:
        result = await self.stream(kind, turns, **kwargs)
        return result.text

    async def generate_json(self, kind: AgentKind, turns: Sequence[ChatTurn], **kwargs: Any) -> Any:
        """Run a JSON-mode generation and parse the response."""

        text = await self.generate_text(kind, turns, **kwargs)
        try:
            return extract_json(text)
        except ValueError as error:
            raise StructuredOutputError(
                f"{kind.value} returned unparseable JSON: {text[:200]!r}",
                user_message=f"The {kind.value} agent returned a malformed response.",
            ) from error
