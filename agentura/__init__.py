"""Agentura: a supervisor-driven multi-agent orchestration engine."""

__version__ = "0.1.0"
