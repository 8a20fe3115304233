"""Tracker configuration for pygentrack."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pygentrack._constants import DEFAULT_NAMESPACE, DEFAULT_REDIS_URL, DEFAULT_SOCKET_TIMEOUT, KEY_SEPARATOR
from pygentrack.exceptions import GenTrackConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise GenTrackConfigError(f"{name} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    redis_url : str
        URL of the Redis server holding the pending sets.
    namespace : str
        Key prefix.  Keys are ``<namespace>::<collector>::<kind>``.
    socket_timeout : float
        Redis socket read/write timeout in seconds.
    socket_connect_timeout : float
        Redis connect timeout in seconds.
    serialize_per_entity : bool
        Serialise concurrent reconcile calls for the same generator within
        this process.
    acknowledge_observed_only : bool
        When draining, remove only the ids that were read instead of
        deleting the whole sets.
    """

    redis_url: str = DEFAULT_REDIS_URL
    namespace: str = DEFAULT_NAMESPACE
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    socket_connect_timeout: float = DEFAULT_SOCKET_TIMEOUT
    serialize_per_entity: bool = False
    acknowledge_observed_only: bool = False

    def __post_init__(self) -> None:
        if not self.redis_url.strip():
            raise GenTrackConfigError("redis_url must be non-empty")
        namespace = self.namespace
        if not namespace.strip():
            raise GenTrackConfigError("namespace must be non-empty")
        if namespace != namespace.strip():
            raise GenTrackConfigError(f"namespace must not have surrounding whitespace, got {namespace!r}")
        if namespace.startswith(KEY_SEPARATOR) or namespace.endswith(KEY_SEPARATOR):
            raise GenTrackConfigError(f"namespace must not start or end with {KEY_SEPARATOR!r}")
        if self.socket_timeout <= 0 or self.socket_connect_timeout <= 0:
            raise GenTrackConfigError("socket timeouts must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from ``GENTRACK_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "GENTRACK_REDIS_URL": "redis_url",
            "GENTRACK_NAMESPACE": "namespace",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "GENTRACK_SOCKET_TIMEOUT": "socket_timeout",
            "GENTRACK_SOCKET_CONNECT_TIMEOUT": "socket_connect_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)

        if "serialize_per_entity" not in overrides:
            config_kwargs["serialize_per_entity"] = _env_bool(env.get("GENTRACK_SERIALIZE_PER_ENTITY"), False)

        if "acknowledge_observed_only" not in overrides:
            config_kwargs["acknowledge_observed_only"] = _env_bool(
                env.get("GENTRACK_ACKNOWLEDGE_OBSERVED_ONLY"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
