"""Observability — prompt registry, structured logging, and MLflow tracing helpers."""

from leadagent.observability.logging import get_correlation_id, setup_logging
from leadagent.observability.prompts import get_active_prompt, get_prompt_version

__all__ = ["get_active_prompt", "get_correlation_id", "get_prompt_version", "setup_logging"]
