"""Default model resolver wiring using environment-derived settings."""

from __future__ import annotations

import os
from typing import Callable, Dict, Optional, TypedDict

from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from agentura.config import Settings
from agentura.gateway.langchain_service import ModelResolver
from agentura.models import MODEL_KEYS


class ModelConfig(TypedDict):
    id: str
    api_key: Optional[str]
    base_url: Optional[str]


def _env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def resolve_model_configs(settings: Settings) -> Dict[str, ModelConfig]:
    """Build normalized model configs (id + credentials) for every slot.

    A slot without its own key falls back to OPENAI_API_KEY.
    """

    models = settings.models
    configs: Dict[str, ModelConfig] = {}
    for slot in MODEL_KEYS:
        configs[slot] = {
            "id": getattr(models, slot),
            "api_key": getattr(models, f"{slot}_api_key") or _env("OPENAI_API_KEY"),
            "base_url": getattr(models, f"{slot}_base_url") or _env("OPENAI_BASE_URL"),
        }
    return configs


def _chat_kwargs(model: str, api_key: Optional[str], base_url: Optional[str]) -> Dict[str, object]:
    if not api_key:
        raise RuntimeError(f"Missing API key for model {model}; configure it in .env.")
    kwargs: Dict[str, object] = {"model": model, "api_key": api_key}
    if base_url:
        kwargs["base_url"] = base_url
    return kwargs


def build_model_resolver(model_configs: Dict[str, ModelConfig]) -> ModelResolver:
    """Construct a resolver that returns ChatOpenAI-compatible clients."""

    catalog: Dict[str, Callable[[], ChatOpenAI]] = {}
    for slot, config in model_configs.items():
        if slot == "embedding":
            continue
        catalog[config["id"]] = lambda cfg=config: ChatOpenAI(
            streaming=True,
            **_chat_kwargs(cfg["id"], cfg["api_key"], cfg["base_url"]),
        )

    def resolver(model_id: str):
        if model_id not in catalog:
            raise KeyError(f"Model {model_id} is not registered in the configuration.")
        return catalog[model_id]()

    return resolver


def build_embeddings(model_configs: Dict[str, ModelConfig]) -> OpenAIEmbeddings:
    config = model_configs["embedding"]
    return OpenAIEmbeddings(**_chat_kwargs(config["id"], config["api_key"], config["base_url"]))
