from __future__ import annotations

import os
from typing import Callable, Union

os.environ.setdefault("API_KEY", "test-api-key")

import httpx
import pytest

from qbo_actions.core.config import Settings
from qbo_actions.services.qbo_client import QuickBooksClient, QuickBooksCredentials


REALM_ID = "123"
CREDENTIALS = QuickBooksCredentials(access_token="access-token", realm_id=REALM_ID, environment="sandbox")

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeQuickBooks:
    """Serves queued responses and records every outbound request."""

    def __init__(self, responses: list[Responder]):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        responder = self.responses.pop(0)
        if callable(responder):
            return responder(request)
        return responder

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        API_KEY="test-api-key",
        RETRY_MAX_ATTEMPTS=3,
        RETRY_MAX_WAIT=0.0,
        QBO_QUERY_PAGE_SIZE=2,
    )


@pytest.fixture
def fake_qbo() -> Callable[..., FakeQuickBooks]:
    def _make(*responses: Responder) -> FakeQuickBooks:
        return FakeQuickBooks(list(responses))

    return _make


@pytest.fixture
def make_client(settings: Settings) -> Callable[[FakeQuickBooks], QuickBooksClient]:
    def _make(fake: FakeQuickBooks) -> QuickBooksClient:
        return QuickBooksClient(CREDENTIALS, settings, transport=fake.transport)

    return _make
