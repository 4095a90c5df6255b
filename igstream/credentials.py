"""Credentials used to open the push transport."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StreamingCredentials:
    """Username, password and endpoint for the streaming server. Opaque to the pipeline."""

    username: str
    password: str
    server_url: str

    @classmethod
    def from_tokens(cls, client_id: str, cst: str, x_security_token: str, server_url: str) -> StreamingCredentials:
        """Build credentials from REST session tokens.

        The streaming server takes the client id as username and both
        security tokens, in ``CST-<cst>|XST-<xst>`` form, as password.
        """
        return cls(
            username=client_id,
            password=f"CST-{cst}|XST-{x_security_token}",
            server_url=server_url,
        )

    @classmethod
    def from_env(cls) -> StreamingCredentials:
        """Read IG_CLIENT_ID, IG_CST, IG_XST and IG_STREAMING_URL. Missing values are empty."""
        return cls.from_tokens(
            client_id=os.environ.get("IG_CLIENT_ID", "").strip(),
            cst=os.environ.get("IG_CST", "").strip(),
            x_security_token=os.environ.get("IG_XST", "").strip(),
            server_url=os.environ.get("IG_STREAMING_URL", "").strip(),
        )

    def __repr__(self) -> str:
        return f"StreamingCredentials(username={self.username!r}, password='***', server_url={self.server_url!r})"
