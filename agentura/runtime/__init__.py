"""Runtime utilities."""

from .app import build_orchestrator
from .model_resolver import build_embeddings, build_model_resolver, resolve_model_configs

__all__ = ["build_embeddings", "build_model_resolver", "build_orchestrator", "resolve_model_configs"]
