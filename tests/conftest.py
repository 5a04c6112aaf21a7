"""Shared fixtures for interchain tests."""

from __future__ import annotations

import asyncio

import pytest

from interchain.config import InterchainConfig, clear_config_instance
from interchain.exceptions import RequestCanceled
from interchain.pipeline.context import Context, Response
from interchain.provider import HttpProvider

TEST_URI = "https://example.test/api"


class FakeTransport:
    """In-memory transport that replays scripted outcomes.

    Each send pops the next queued outcome: a Response is returned, an
    exception is raised. With an empty queue ``default`` is returned. When
    ``block`` is set, sends wait until ``release()`` or ``abort()``.
    """

    def __init__(self) -> None:
        self.outcomes: list[Response | BaseException] = []
        self.default = Response(status=200, reason="OK")
        self.sent: list[Context] = []
        self.aborts: list[tuple[Context, BaseException | None]] = []
        self.block = False
        self.dispatched = asyncio.Event()
        self._pending: dict[str, asyncio.Future[None]] = {}

    def queue(self, *outcomes: Response | BaseException) -> None:
        self.outcomes.extend(outcomes)

    def release(self) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_result(None)

    async def send(self, context: Context) -> Response:
        self.sent.append(context)
        self.dispatched.set()
        if self.block:
            future = asyncio.get_running_loop().create_future()
            self._pending[context.id] = future
            try:
                await future
            finally:
                self._pending.pop(context.id, None)
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def abort(self, context: Context, reason: BaseException | None = None) -> None:
        self.aborts.append((context, reason))
        future = self._pending.get(context.id)
        if future is not None and not future.done():
            future.set_exception(reason or RequestCanceled("Request canceled."))


@pytest.fixture(autouse=True)
def cleanup():
    """Clean up the global config between tests."""
    yield
    clear_config_instance()


@pytest.fixture
def config() -> InterchainConfig:
    """Default configuration, independent of any interchain.yaml on disk."""
    return InterchainConfig()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def provider(transport, config) -> HttpProvider:
    """HTTP provider wired to the fake transport."""
    return HttpProvider(transport, config=config, uri=TEST_URI)
