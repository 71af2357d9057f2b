"""Shared test fixtures."""

import mlflow
import pytest

from leadagent.config import settings


@pytest.fixture(autouse=True)
def _disable_mlflow_tracing():
    """Disable MLflow tracing during tests — no side effects, no mlruns/ writes."""
    mlflow.tracing.disable()
    yield
    mlflow.tracing.enable()


@pytest.fixture
def batchdata_token(monkeypatch):
    """Configure a BatchData token for the duration of a test."""
    monkeypatch.setattr(settings, "batchdata_api_token", "test-batchdata-token")
    return "test-batchdata-token"
