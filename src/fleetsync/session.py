"""Session state management for authenticated API calls."""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

#: Default session time-to-live in seconds (14 days).
#: The service does not return an explicit expiry; sessions are also
#: refreshed whenever the server rejects them.
DEFAULT_SESSION_TTL: float = 14 * 24 * 3600


class Session(BaseModel):
    """Immutable session state after a successful Authenticate call.

    Parameters
    ----------
    database : str
        Database the session is bound to.
    user_name : str
        The authenticated user name.
    session_id : str
        Session token sent with every post-login call instead of the password.
    base_url : str
        JSON-RPC endpoint owning the session (after any server redirect).
    created_at : float
        Monotonic timestamp (``time.monotonic()``) when the session
        was created.  Defaults to *now* if not provided.
    ttl : float
        Time-to-live in seconds.  After this period the session is
        considered expired and should be refreshed via a new login.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    database: str
    user_name: str
    session_id: str
    base_url: str
    created_at: float = Field(default_factory=time.monotonic)
    ttl: float = DEFAULT_SESSION_TTL

    def credentials(self) -> dict[str, Any]:
        """Credentials object sent in the ``params`` of post-login calls."""
        return {
            "database": self.database,
            "userName": self.user_name,
            "sessionId": self.session_id,
        }

    @property
    def is_expired(self) -> bool:
        """Whether the session has exceeded its TTL."""
        return (time.monotonic() - self.created_at) >= self.ttl

    @property
    def age(self) -> float:
        """Seconds since the session was created."""
        return time.monotonic() - self.created_at
