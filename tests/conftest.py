"""Pytest configuration for coursepay tests."""

import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from coursepay.api.client import BackendClient
from coursepay.core.config import CheckoutConfig
from coursepay.core.notifications import NotificationRecorder
from fake_backend import BackendState, create_app


@pytest.fixture
def config():
    """Fast debounce so timing tests stay quick."""
    return CheckoutConfig(
        api_base_url="http://testserver/api",
        api_token="test-token",
        request_timeout=5.0,
        debounce_ms=20,
    )


@pytest.fixture
def backend():
    """Mutable state behind the fake storefront API."""
    return BackendState()


@pytest.fixture
def client(config, backend):
    """BackendClient wired to the in-process fake backend."""
    transport = httpx.ASGITransport(app=create_app(backend))
    return BackendClient(config, transport=transport)


@pytest.fixture
def notes():
    return NotificationRecorder()
