"""Shared test fixtures for vrest.

Provides a client wired to an :class:`httpx.MockTransport`, output state
management and a CLI runner. These fixtures are discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from vrest.client import Client
from vrest.output import OutputFormat, OutputManager, reset_output, set_output

BASE_URL = "https://api.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test, the cached references go stale once the test finishes.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_client() -> Callable[[Handler], Client]:
    """Factory for clients whose transport is served by *handler*.

    The clients get :data:`BASE_URL` as base URL and are closed after the
    test.
    """
    clients: list[Client] = []

    def _make(handler: Handler) -> Client:
        http_client = httpx.Client(transport=httpx.MockTransport(handler))
        client = Client.with_http_client(http_client).set_base_url(BASE_URL)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.http_client.close()


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a plain, quiet output manager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a plain, colourless, verbose output manager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
