"""Pytest fixtures for fetchjob tests."""

from collections.abc import Callable

import httpx
import pytest

from fetchjob.web.runtime import ClientFactory

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def calls() -> list[tuple[str, str]]:
    """(method, url) of every request that reached the mock transport."""
    return []


@pytest.fixture
def mock_factory(calls) -> Callable[[Handler], ClientFactory]:
    """Turn a request handler into a client factory backed by httpx.MockTransport."""

    def build(handler: Handler) -> ClientFactory:
        def recording(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, str(request.url)))
            return handler(request)

        def factory(timeout: float) -> httpx.Client:
            return httpx.Client(transport=httpx.MockTransport(recording), timeout=timeout)

        return factory

    return build
