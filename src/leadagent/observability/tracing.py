"""Thin MLflow tracing wrapper used by the extraction and search clients.

Usage:

    from leadagent.observability.tracing import trace, start_span

    @trace(name="extract", span_type="CHAT_MODEL")
    async def extract(): ...

    with start_span("batchdata_search", span_type="TOOL") as span:
        span.set_inputs({...})
"""

import logging
from contextlib import contextmanager

import mlflow

logger = logging.getLogger(__name__)


def trace(name: str | None = None, **kwargs):
    """Decorator: wraps a sync or async function in an MLflow trace."""
    return mlflow.trace(name=name, **kwargs) if name else mlflow.trace(**kwargs)


@contextmanager
def start_span(name: str = "span", **kwargs):
    """Context manager: MLflow span for a single upstream call."""
    with mlflow.start_span(name=name, **kwargs) as span:
        yield span


def set_tracking_uri(uri: str) -> None:
    mlflow.set_tracking_uri(uri)


def set_experiment(name: str) -> None:
    try:
        mlflow.set_experiment(name)
    except Exception as e:
        # Tracking store may be unreachable at startup
        logger.warning("Could not set MLflow experiment %r: %s", name, e)


def enable_async_logging() -> None:
    mlflow.config.enable_async_logging()


def init_tracing(tracking_uri: str, experiment_name: str) -> None:
    """Point MLflow at the tracking store and enable async trace export."""
    set_tracking_uri(tracking_uri)
    set_experiment(experiment_name)
    enable_async_logging()
    logger.info("MLflow tracing enabled: %s", tracking_uri)
