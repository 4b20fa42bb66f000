"""Model slot management."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Literal, Optional

ModelKey = Literal["base", "reason", "vision", "code", "chat", "embedding"]

MODEL_KEYS: tuple[ModelKey, ...] = ("base", "reason", "vision", "code", "chat", "embedding")


@dataclass(frozen=True, slots=True)
class ModelSpec:
    """Normalized description of an LLM/embedding endpoint."""

    key: ModelKey
    model_id: str
    can_tools: bool
    multimodal: bool
    domain: str  # general | reasoning | code | chat | embedding


class ModelRegistry:
    """Central registry mapping model slots to concrete model ids."""

    def __init__(self, specs: Optional[Iterable[ModelSpec]] = None) -> None:
        self._specs: Dict[str, ModelSpec] = {}
        if specs:
            for spec in specs:
                self.register(spec)

    def register(self, spec: ModelSpec) -> None:
        """Store a spec under its key."""

        self._specs[spec.key] = spec

    def get(self, key: str) -> ModelSpec:
        """Return the spec for a given key."""

        if key not in self._specs:
            raise KeyError(f"Unknown model key: {key}")
        return self._specs[key]

    def model_id(self, key: str) -> str:
        return self.get(key).model_id

    def __contains__(self, key: object) -> bool:
        return key in self._specs


def build_default_registry(model_ids: Dict[str, str]) -> ModelRegistry:
    """Instantiate the registry from a slot -> model id mapping."""

    return ModelRegistry(
        [
            ModelSpec(key="base", model_id=model_ids["base"], can_tools=False, multimodal=False, domain="general"),
            ModelSpec(key="reason", model_id=model_ids["reason"], can_tools=True, multimodal=False, domain="reasoning"),
            ModelSpec(key="vision", model_id=model_ids["vision"], can_tools=False, multimodal=True, domain="general"),
            ModelSpec(key="code", model_id=model_ids["code"], can_tools=True, multimodal=False, domain="code"),
            ModelSpec(key="chat", model_id=model_ids["chat"], can_tools=True, multimodal=False, domain="chat"),
            ModelSpec(
                key="embedding",
                model_id=model_ids["embedding"],
                can_tools=False,
                multimodal=False,
                domain="embedding",
            ),
        ]
    )
