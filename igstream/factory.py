"""Factory for creating push transports, and an environment-configured platform."""

from __future__ import annotations

import logging
import os
from typing import Sequence

from .credentials import StreamingCredentials
from .interface import DealingPlatform, PushTransport

logger = logging.getLogger(__name__)


def create_transport(credentials: StreamingCredentials) -> PushTransport:
    """Create the appropriate push transport for the given credentials.

    - credentials.server_url set and non-empty → LightstreamerTransport (live data)
    - Otherwise → SimulatorTransport (GBM simulation)

    Returns an unconnected transport. Caller must call transport.connect().
    """
    if credentials.server_url.strip():
        from .lightstreamer_client import LightstreamerTransport

        logger.info("Push transport: Lightstreamer at %s", credentials.server_url)
        return LightstreamerTransport(credentials=credentials)
    else:
        from .simulator import SimulatorTransport

        interval = float(os.environ.get("IG_SIMULATOR_INTERVAL", "0.5") or 0.5)
        logger.info("Push transport: GBM Simulator (%.2fs interval)", interval)
        return SimulatorTransport(update_interval=interval)


class EnvironmentPlatform(DealingPlatform):
    """DealingPlatform configured from environment variables.

    IG_ACCOUNT_IDS is a comma-separated list of the active client's accounts.
    Credentials come from StreamingCredentials.from_env().
    """

    def __init__(self, account_ids: Sequence[str] | None = None) -> None:
        if account_ids is None:
            raw = os.environ.get("IG_ACCOUNT_IDS", "")
            account_ids = [a.strip() for a in raw.split(",") if a.strip()]
        self._account_ids = list(account_ids)

    def current_accounts(self) -> list[str]:
        return list(self._account_ids)

    def streaming_credentials(self) -> StreamingCredentials:
        return StreamingCredentials.from_env()
