"""Model registry exports."""

from .registry import MODEL_KEYS, ModelKey, ModelRegistry, ModelSpec, build_default_registry

__all__ = ["MODEL_KEYS", "ModelRegistry", "ModelSpec", "build_default_registry", "ModelKey"]
