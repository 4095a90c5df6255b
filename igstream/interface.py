"""Abstract interfaces at the edges of the streaming pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Mapping, Sequence

if TYPE_CHECKING:
    from .credentials import StreamingCredentials
    from .errors import TransportError
    from .subscriptions import SubscriptionDescriptor

# (item_name, merged_fields, delta_fields), called on the transport's delivery thread
UpdateCallback = Callable[[str, Mapping[str, Any], Mapping[str, Any]], None]
ErrorCallback = Callable[["TransportError"], None]


class PushTransport(ABC):
    """Contract for real-time push transports.

    A transport owns its own delivery thread. It invokes the ``on_update``
    callback passed to start_subscription() for every push, and the error
    callback for connection-level failures. Callbacks must return quickly:
    they run on the transport's critical path.

    Lifecycle:
        transport = create_transport(credentials)
        transport.set_error_handler(on_error)
        transport.connect()
        handle = transport.start_subscription(descriptor, on_update, {})
        # ... pushes arrive on the delivery thread ...
        transport.stop_subscription(handle)
        transport.disconnect()
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the connection. Blocks until connected.

        Raises StreamingConnectionError if the connection cannot be established.
        """

    @abstractmethod
    def disconnect(self) -> None:
        """Close the connection and stop delivering. Safe to call multiple times."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the connection is currently open."""

    @abstractmethod
    def set_error_handler(self, callback: ErrorCallback) -> None:
        """Register the callback that receives every transport-level error."""

    @abstractmethod
    def start_subscription(
        self,
        descriptor: SubscriptionDescriptor,
        on_update: UpdateCallback,
        options: Mapping[str, Any],
    ) -> Any:
        """Start delivering pushes for ``descriptor``. Returns an opaque handle.

        Raises SubscriptionStartError if the transport refuses the subscription.
        """

    @abstractmethod
    def stop_subscription(self, handle: Any) -> None:
        """Stop delivering pushes for a started subscription. Already-delivered pushes are unaffected."""


class DealingPlatform(ABC):
    """The parent session that the streaming component borrows from.

    The platform must outlive every StreamingSession that refers to it.
    """

    @abstractmethod
    def current_accounts(self) -> Sequence[Any]:
        """Accounts of the active client, as id strings or objects with ``account_id``."""

    @abstractmethod
    def streaming_credentials(self) -> StreamingCredentials:
        """Username, password and endpoint for the push transport."""
