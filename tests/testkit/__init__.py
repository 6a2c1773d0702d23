"""
Testkit package for BSM Automation Backend tests.

Provides HTTP-boundary mocking, factories, and golden fixtures.
"""
from .factories.n8n_factory import N8nResponseFactory
from .http_mocks.n8n_mock import N8nHttpMock

__all__ = [
    "N8nResponseFactory",
    "N8nHttpMock",
]
