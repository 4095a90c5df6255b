"""Pytest configuration and fixtures."""

from __future__ import annotations

import time
from typing import Any, Mapping

import pytest

from igstream.credentials import StreamingCredentials
from igstream.errors import StreamingConnectionError, SubscriptionStartError, TransportError
from igstream.interface import DealingPlatform, PushTransport
from igstream.session import StreamingSession
from igstream.subscriptions import FAMILY_FIELDS


class FakePlatform(DealingPlatform):
    """Parent session stand-in with a fixed account list."""

    def __init__(self, accounts: list[Any] | None = None) -> None:
        self.accounts = accounts if accounts is not None else ["ABC123", "XYZ987"]
        self.credentials = StreamingCredentials.from_tokens("client-1", "cst-token", "xst-token", "")

    def current_accounts(self) -> list[Any]:
        return list(self.accounts)

    def streaming_credentials(self) -> StreamingCredentials:
        return self.credentials


class FakeTransport(PushTransport):
    """In-process transport. Tests call push() to play the delivery thread."""

    def __init__(self, credentials: StreamingCredentials | None = None, fail_connect: bool = False) -> None:
        self.credentials = credentials
        self.fail_connect = fail_connect
        self.connected = False
        self.disconnect_calls = 0
        self.error_handler = None
        self.active: dict[int, tuple[Any, Any, Mapping[str, Any]]] = {}
        self.stopped: list[int] = []
        self._next = 0

    def connect(self) -> None:
        if self.fail_connect:
            raise StreamingConnectionError("connection refused")
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False
        self.disconnect_calls += 1

    @property
    def is_connected(self) -> bool:
        return self.connected

    def set_error_handler(self, callback) -> None:
        self.error_handler = callback

    def start_subscription(self, descriptor, on_update, options):
        allowed = FAMILY_FIELDS[descriptor.family]
        if not descriptor.fields or any(f not in allowed for f in descriptor.fields):
            raise SubscriptionStartError("Invalid field list", descriptor)
        self._next += 1
        self.active[self._next] = (descriptor, on_update, dict(options))
        return self._next

    def stop_subscription(self, handle) -> None:
        self.active.pop(handle, None)
        self.stopped.append(handle)

    def push(self, item: str, delta: Mapping[str, Any], merged: Mapping[str, Any] | None = None) -> None:
        """Deliver a push to every active subscription that includes ``item``."""
        for descriptor, on_update, _ in list(self.active.values()):
            if item in descriptor.items:
                on_update(item, merged if merged is not None else delta, delta)

    def fail(self, error: TransportError) -> None:
        if error.fatal:
            self.connected = False
        self.error_handler(error)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def transports() -> list[FakeTransport]:
    """Every FakeTransport created by the session fixture, in creation order."""
    return []


@pytest.fixture
def session(platform, transports) -> StreamingSession:
    def factory(credentials: StreamingCredentials) -> FakeTransport:
        transport = FakeTransport(credentials)
        transports.append(transport)
        return transport

    return StreamingSession(platform, transport_factory=factory)


def wait_for_data(session: StreamingSession, timeout: float = 2.0) -> bool:
    """Poll until the session has queued data, so tests never block forever in pop_data()."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if session.has_data_available():
            return True
        time.sleep(0.005)
    return False


@pytest.fixture(name="wait_for_data")
def wait_for_data_fixture():
    return wait_for_data


@pytest.fixture
def failing_session(platform) -> StreamingSession:
    """A session whose transport refuses every connection."""
    return StreamingSession(platform, transport_factory=lambda c: FakeTransport(c, fail_connect=True))
