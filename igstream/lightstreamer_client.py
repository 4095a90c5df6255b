"""Lightstreamer push transport for live IG streaming data."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

from .credentials import StreamingCredentials
from .errors import StreamingConnectionError, SubscriptionStartError, TransportError
from .interface import ErrorCallback, PushTransport, UpdateCallback
from .subscriptions import SubscriptionDescriptor, SubscriptionMode

logger = logging.getLogger(__name__)


class LightstreamerTransport(PushTransport):
    """PushTransport backed by the Lightstreamer client library.

    The library runs its own session thread and calls back into the
    listeners below from it. connect() blocks until the session reports a
    streaming status, a server error, or the timeout expires.

    The library's automatic recovery is not relied upon: once an established
    session drops, a fatal TransportError is reported and the session is
    closed, leaving reconnection to the caller.
    """

    def __init__(
        self,
        credentials: StreamingCredentials,
        adapter_set: str | None = None,
        connect_timeout: float = 15.0,
    ) -> None:
        self._credentials = credentials
        self._adapter_set = adapter_set
        self._timeout = connect_timeout
        self._client: Any = None  # Lazy import to avoid hard dependency
        self._on_error: ErrorCallback | None = None

        self._ready = threading.Event()
        self._failure: str | None = None
        self._connected = False
        self._closing = False

    def connect(self) -> None:
        # Lazy import: only needed when streaming live data.
        try:
            from lightstreamer.client import LightstreamerClient
        except ImportError as e:
            raise StreamingConnectionError(
                "lightstreamer-client-lib is required for live streaming (install the 'live' extra)"
            ) from e

        client = LightstreamerClient(self._credentials.server_url, self._adapter_set)
        client.connectionDetails.setUser(self._credentials.username)
        client.connectionDetails.setPassword(self._credentials.password)
        client.addListener(_client_listener(self))

        self._ready.clear()
        self._failure = None
        self._closing = False
        self._client = client

        try:
            client.connect()
        except Exception as e:
            self._client = None
            raise StreamingConnectionError(f"Could not connect to {self._credentials.server_url}: {e}") from e

        if not self._ready.wait(self._timeout):
            self._shutdown()
            raise StreamingConnectionError(
                f"Timed out after {self._timeout:.0f}s connecting to {self._credentials.server_url}"
            )
        if self._failure is not None:
            self._shutdown()
            raise StreamingConnectionError(self._failure)

        logger.info("Lightstreamer connected to %s", self._credentials.server_url)

    def disconnect(self) -> None:
        if self._client is not None:
            self._shutdown()
            logger.info("Lightstreamer disconnected")

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._connected

    def set_error_handler(self, callback: ErrorCallback) -> None:
        self._on_error = callback

    def start_subscription(
        self,
        descriptor: SubscriptionDescriptor,
        on_update: UpdateCallback,
        options: Mapping[str, Any],
    ) -> Any:
        if self._client is None:
            raise SubscriptionStartError("Transport is not connected", descriptor)

        from lightstreamer.client import Subscription

        max_frequency = options.get("max_frequency")
        try:
            subscription = Subscription(descriptor.mode.value, list(descriptor.items), list(descriptor.fields))
            subscription.setRequestedSnapshot("yes" if options.get("snapshot") else "no")
            subscription.setRequestedMaxFrequency("unlimited" if max_frequency is None else str(max_frequency))
            subscription.addListener(_subscription_listener(self, descriptor, on_update))
            self._client.subscribe(subscription)
        except Exception as e:
            raise SubscriptionStartError(f"Lightstreamer rejected subscription: {e}", descriptor) from e
        return subscription

    def stop_subscription(self, handle: Any) -> None:
        if self._client is not None:
            self._client.unsubscribe(handle)

    # --- Callbacks from the Lightstreamer session thread ---

    def _status_changed(self, status: str) -> None:
        logger.debug("Lightstreamer status: %s", status)
        if status.startswith("CONNECTED:") and not status.endswith("STREAM-SENSING"):
            self._connected = True
            self._ready.set()
        elif status.startswith("DISCONNECTED"):
            was_connected = self._connected
            self._connected = False
            if self._closing:
                return
            if not self._ready.is_set():
                self._failure = self._failure or f"Connection refused ({status})"
                self._ready.set()
            elif was_connected:
                self._report(TransportError(f"Streaming connection lost ({status})", fatal=True))
                self._closing = True
                threading.Thread(target=self._client_disconnect, name="lightstreamer-close", daemon=True).start()

    def _server_error(self, code: int, message: str) -> None:
        self._connected = False
        if not self._ready.is_set():
            self._failure = f"Server error {code}: {message}"
            self._ready.set()
            return
        self._report(TransportError(message, code=code, fatal=True))

    def _subscription_error(self, descriptor: SubscriptionDescriptor, code: int, message: str) -> None:
        self._report(
            TransportError(f"{descriptor.family.value} subscription error {code}: {message}", code=code)
        )

    def _report(self, error: TransportError) -> None:
        if self._on_error is not None:
            self._on_error(error)

    def _client_disconnect(self) -> None:
        client = self._client
        if client is not None:
            client.disconnect()

    def _shutdown(self) -> None:
        self._closing = True
        self._connected = False
        client, self._client = self._client, None
        if client is not None:
            client.disconnect()


def _client_listener(transport: LightstreamerTransport) -> Any:
    from lightstreamer.client import ClientListener

    class _Listener(ClientListener):
        def onStatusChange(self, status):
            transport._status_changed(status)

        def onServerError(self, code, message):
            transport._server_error(code, message)

    return _Listener()


def _subscription_listener(
    transport: LightstreamerTransport,
    descriptor: SubscriptionDescriptor,
    on_update: UpdateCallback,
) -> Any:
    from lightstreamer.client import SubscriptionListener

    distinct = descriptor.mode is SubscriptionMode.DISTINCT

    class _Listener(SubscriptionListener):
        def onItemUpdate(self, update):
            merged = update.getFields()
            # A DISTINCT update stands alone: every field belongs to the delta
            delta = merged if distinct else update.getChangedFields()
            on_update(update.getItemName(), merged, delta)

        def onSubscriptionError(self, code, message):
            transport._subscription_error(descriptor, code, message)

    return _Listener()
