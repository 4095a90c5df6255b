"""Streaming session: owns the transport connection and the event queue."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from .errors import CoercionError, MalformedTopicKey, StreamingConnectionError, SubscriptionStartError, TransportError
from .event_queue import EventQueue
from .events import StreamEvent, TransportErrorEvent
from .factory import create_transport
from .interface import DealingPlatform, PushTransport, UpdateCallback
from .keys import Scale
from .models import instantiate
from .normalizer import ModelFactory, normalize
from .subscriptions import (
    SubscriptionDescriptor,
    build_accounts_subscription,
    build_chart_ticks_subscription,
    build_consolidated_chart_subscription,
    build_markets_subscription,
    build_trades_subscription,
)

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class StreamingSession:
    """Real-time updates for one dealing platform session.

    The platform is a borrowed reference: it supplies the active client's
    accounts and the transport credentials, and must outlive this object.

    Lifecycle calls (connect, disconnect) and subscription calls are not
    safe to interleave from different threads. pop_data() is meant for a
    single consumer thread.

    Usage:
        session = StreamingSession(platform)
        session.connect()
        markets = session.build_markets_subscription(["CS.D.EURUSD.CFD.IP"])
        errors = session.start_subscriptions([markets], snapshot=True)
        while (event := session.pop_data()) is not None:
            ...
        session.disconnect()
    """

    def __init__(
        self,
        platform: DealingPlatform,
        transport_factory: Callable[..., PushTransport] = create_transport,
        model_factory: ModelFactory = instantiate,
    ) -> None:
        self._platform = platform
        self._transport_factory = transport_factory
        self._model_factory = model_factory
        self._transport: PushTransport | None = None
        self._queue = EventQueue()
        self._handles: dict[SubscriptionDescriptor, Any] = {}
        # Set once the fatal error of the current connection is queued
        self._dropped = False

    # --- Lifecycle ---

    @property
    def state(self) -> ConnectionState:
        transport = self._transport
        if transport is not None and transport.is_connected:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    def connect(self) -> None:
        """Open a fresh transport connection.

        Any previous transport is closed and unread events are discarded.
        Raises StreamingConnectionError if the connection cannot be opened.
        """
        if self._transport is not None:
            logger.info("Closing previous streaming transport before reconnecting")
            self._transport.disconnect()
            self._transport = None
        self._handles = {}
        self._queue = EventQueue()
        self._dropped = False

        transport = self._transport_factory(self._platform.streaming_credentials())
        transport.set_error_handler(self._error_handler(self._queue))
        transport.connect()

        self._transport = transport
        logger.info("Streaming session connected")

    def disconnect(self) -> None:
        """Close the transport. Later reads return None."""
        if self._transport is not None:
            self._transport.disconnect()
            logger.info("Streaming session disconnected")
        self._transport = None
        self._handles = {}

    # --- Subscription builders ---

    def build_accounts_subscription(self, accounts: Iterable[Any] | None = None) -> SubscriptionDescriptor:
        """Balance updates. With no accounts, all accounts of the active client."""
        return build_accounts_subscription(accounts, self._platform)

    def build_markets_subscription(self, epics: Iterable[str]) -> SubscriptionDescriptor:
        return build_markets_subscription(epics)

    def build_trades_subscription(self, accounts: Iterable[Any] | None = None) -> SubscriptionDescriptor:
        """Confirmations, position and working order updates. With no accounts, all of the active client's."""
        return build_trades_subscription(accounts, self._platform)

    def build_chart_ticks_subscription(self, epics: Iterable[str]) -> SubscriptionDescriptor:
        return build_chart_ticks_subscription(epics)

    def build_consolidated_chart_subscription(self, epic: str, scale: Scale | str) -> SubscriptionDescriptor:
        return build_consolidated_chart_subscription(epic, scale)

    # --- Subscriptions ---

    def start_subscriptions(
        self,
        descriptors: Iterable[SubscriptionDescriptor],
        snapshot: bool = False,
        max_frequency: float | None = None,
    ) -> list[SubscriptionStartError | None]:
        """Start each subscription. Returns one entry per descriptor, in order:
        None if it started, or the SubscriptionStartError the transport reported.

        A failure does not stop the remaining descriptors from being started.
        """
        transport = self._transport
        if transport is None:
            raise StreamingConnectionError("No active streaming session; call connect() first")

        options = {"snapshot": snapshot, "max_frequency": max_frequency}
        results: list[SubscriptionStartError | None] = []
        for descriptor in descriptors:
            if descriptor in self._handles:
                logger.warning("Subscription %s is already running", descriptor.family.value)
                results.append(SubscriptionStartError("Subscription is already running", descriptor))
                continue
            on_update = self._update_handler(descriptor, self._queue)
            try:
                self._handles[descriptor] = transport.start_subscription(descriptor, on_update, options)
            except SubscriptionStartError as e:
                logger.warning("Subscription %s failed to start: %s", descriptor.family.value, e)
                results.append(e)
            else:
                logger.info(
                    "Started %s subscription: %d topics (%s)",
                    descriptor.family.value,
                    len(descriptor.items),
                    descriptor.mode.value,
                )
                results.append(None)
        return results

    def stop_subscription(self, descriptor: SubscriptionDescriptor) -> None:
        """Stop a started subscription. It can be started again later. Queued events are kept."""
        handle = self._handles.pop(descriptor, None)
        if handle is None or self._transport is None:
            return
        self._transport.stop_subscription(handle)
        logger.info("Stopped %s subscription", descriptor.family.value)

    # --- Reading ---

    def pop_data(self) -> StreamEvent | None:
        """Return the next event, blocking until one arrives.

        Returns None immediately when there is no active connection. Events
        already queued when a connection drops are still returned, so the
        error that ended it is always seen. Reads end only once that error
        has been queued, not as soon as the transport stops being connected.
        """
        if self._transport is None:
            return None
        if self._dropped and self._queue.empty():
            return None
        return self._queue.pop()

    def has_data_available(self) -> bool:
        """Whether pop_data() would return an event without waiting. Never consumes."""
        return self._transport is not None and not self._queue.empty()

    # --- Delivery thread ---

    def _update_handler(self, descriptor: SubscriptionDescriptor, queue: EventQueue) -> UpdateCallback:
        family = descriptor.family
        factory = self._model_factory

        def on_update(item_name: str, merged: Mapping[str, Any], delta: Mapping[str, Any]) -> None:
            try:
                events = normalize(family, item_name, merged, delta, factory)
            except (MalformedTopicKey, CoercionError) as e:
                logger.exception("Could not normalize %s update for %s", family.value, item_name)
                queue.put(TransportErrorEvent(error=e))
                return
            for event in events:
                queue.put(event)
            logger.debug("Queued %d event(s) for %s", len(events), item_name)

        return on_update

    def _error_handler(self, queue: EventQueue) -> Callable[[TransportError], None]:
        def on_error(error: TransportError) -> None:
            if error.fatal:
                logger.error("Streaming connection lost: %s", error)
            else:
                logger.warning("Streaming transport error: %s", error)
            queue.put(TransportErrorEvent(error=error))
            # A replaced transport's queue is discarded; its errors must not end reads
            if error.fatal and queue is self._queue:
                self._dropped = True

        return on_error
