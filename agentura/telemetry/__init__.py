"""Telemetry helpers."""

from .tracing import configure_tracing, generation_run_config

__all__ = ["configure_tracing", "generation_run_config"]
