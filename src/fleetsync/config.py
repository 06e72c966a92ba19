"""Service configuration for fleetsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fleetsync._constants import BASE_URL
from fleetsync.exceptions import FleetSyncConfigError

#: Number of feed kinds fetched per entity each cycle (position + odometer).
CALLS_PER_ENTITY = 2


@dataclasses.dataclass(frozen=True)
class FleetSyncConfig:
    """Service configuration.

    All values are read once at startup.

    Parameters
    ----------
    username : str
        Telemetry account user name.
    password : str
        Telemetry account password.
    database : str
        Telemetry database (tenant) name.
    base_url : str
        JSON-RPC endpoint. Replaced for the session lifetime when
        Authenticate redirects to another server.
    output_dir : str
        Directory holding one CSV file per entity.
    cursor_path : str
        JSON file holding the persisted feed cursors.
    cycle_interval : float
        Seconds between cycle triggers.
    match_threshold : float
        A position sample is matched to an odometer reading only when the
        reading precedes it by strictly less than this many seconds.
    lookback : float
        History window in seconds requested for a feed without a cursor.
    max_calls_per_cycle : int
        Hard cap on remote feed calls issued per cycle.
    results_limit : int
        ``resultsLimit`` sent with every GetFeed call.
    request_timeout : float
        Total timeout in seconds for one remote call.
    max_concurrency : int
        Maximum number of remote calls in flight at once.
    session_ttl : float
        Session lifetime in seconds before a proactive re-login. Set to
        ``0`` to only re-login after the server rejects the session.
    """

    username: str
    password: str
    database: str
    base_url: str = BASE_URL
    output_dir: str = "fleetsync-output"
    cursor_path: str = "fleetsync-cursors.json"
    cycle_interval: float = 120.0
    match_threshold: float = 10.0
    lookback: float = 24 * 3600
    max_calls_per_cycle: int = 40
    results_limit: int = 5000
    request_timeout: float = 30.0
    max_concurrency: int = 8
    session_ttl: float = 14 * 24 * 3600

    def validate(self) -> FleetSyncConfig:
        """Check value ranges, returning ``self`` for chaining.

        Raises
        ------
        FleetSyncConfigError
            If a value is out of range or a credential is missing.
        """
        for name in ("username", "password", "database", "base_url"):
            if not str(getattr(self, name)).strip():
                raise FleetSyncConfigError(f"{name} must be non-empty")
        for name in ("cycle_interval", "match_threshold", "lookback", "request_timeout"):
            if getattr(self, name) <= 0:
                raise FleetSyncConfigError(f"{name} must be positive, got {getattr(self, name)}")
        if self.results_limit < 1:
            raise FleetSyncConfigError(f"results_limit must be at least 1, got {self.results_limit}")
        if self.max_concurrency < 1:
            raise FleetSyncConfigError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        if self.max_calls_per_cycle < CALLS_PER_ENTITY:
            raise FleetSyncConfigError(
                f"max_calls_per_cycle must allow at least one entity ({CALLS_PER_ENTITY} calls), "
                f"got {self.max_calls_per_cycle}"
            )
        if self.session_ttl < 0:
            raise FleetSyncConfigError(f"session_ttl must not be negative, got {self.session_ttl}")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetSyncConfig:
        """Create configuration from environment variables.

        Reads ``FLEETSYNC_USERNAME``, ``FLEETSYNC_PASSWORD``,
        ``FLEETSYNC_DATABASE`` and the optional ``FLEETSYNC_*`` tuning
        variables. Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FleetSyncConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "FLEETSYNC_USERNAME": "username",
            "FLEETSYNC_PASSWORD": "password",
            "FLEETSYNC_DATABASE": "database",
            "FLEETSYNC_BASE_URL": "base_url",
            "FLEETSYNC_OUTPUT_DIR": "output_dir",
            "FLEETSYNC_CURSOR_PATH": "cursor_path",
        }
        _ENV_FLOAT_MAP = {
            "FLEETSYNC_CYCLE_INTERVAL": "cycle_interval",
            "FLEETSYNC_MATCH_THRESHOLD": "match_threshold",
            "FLEETSYNC_LOOKBACK": "lookback",
            "FLEETSYNC_REQUEST_TIMEOUT": "request_timeout",
            "FLEETSYNC_SESSION_TTL": "session_ttl",
        }
        _ENV_INT_MAP = {
            "FLEETSYNC_MAX_CALLS_PER_CYCLE": "max_calls_per_cycle",
            "FLEETSYNC_RESULTS_LIMIT": "results_limit",
            "FLEETSYNC_MAX_CONCURRENCY": "max_concurrency",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = int(val)
        except ValueError as exc:
            raise FleetSyncConfigError(f"Invalid numeric environment value: {exc}") from exc

        config_kwargs.update(overrides)

        missing = [name for name in ("username", "password", "database") if name not in config_kwargs]
        if missing:
            env_names = ", ".join(f"FLEETSYNC_{name.upper()}" for name in missing)
            raise FleetSyncConfigError(f"Missing required configuration: {env_names}")

        return cls(**config_kwargs)
