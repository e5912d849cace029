"""Library configuration for ridecache."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from typing import Any, TypeVar

from ridecache.exceptions import RideCacheConfigError

T = TypeVar("T")


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: Callable[[str], T]) -> T:
    try:
        return cast(value)
    except ValueError as exc:
        raise RideCacheConfigError(f"{env_key} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Remote sync (MQTT) listener settings.

    Parameters
    ----------
    enabled : bool
        Start the listener when the datasource is opened by a sync worker.
    broker_host : str
        MQTT broker host name.
    broker_port : int
        MQTT broker port.
    topic_template : str
        Topic per user; ``{user_id}`` is substituted.
    username, password : str or None
        Broker credentials.
    keepalive : int
        MQTT keepalive in seconds.
    tls : bool
        Connect with TLS using the system trust store.
    """

    enabled: bool = False
    broker_host: str = "localhost"
    broker_port: int = 8883
    topic_template: str = "rides/{user_id}/current"
    username: str | None = None
    password: str | None = None
    keepalive: int = 120
    tls: bool = True

    def topic_for(self, user_id: str) -> str:
        return self.topic_template.format(user_id=user_id)


@dataclasses.dataclass(frozen=True)
class RideCacheConfig:
    """Datasource configuration.

    Parameters
    ----------
    storage_dir : str or None
        Directory for the file backend. ``None`` keeps rides in memory.
    key_prefix : str
        Prefix of the per-user storage key (``<prefix><user_id>``).
    strict_patches : bool
        Raise instead of silently ignoring patches for users without a
        current ride.
    serialize_patches : bool
        Serialize read-modify-write patches per user.
    geocoder_base_url : str
        Base URL of the Nominatim-compatible reverse geocoder.
    geocoder_timeout : float
        Per-request timeout in seconds.
    geocoder_user_agent : str
        User agent sent to the geocoder (Nominatim requires one).
    geocoder_language : str
        ``Accept-Language`` for formatted addresses.
    address_placeholder : str
        Display value used when an address cannot be resolved.
    sync : SyncConfig
        Remote sync listener settings.
    """

    storage_dir: str | None = None
    key_prefix: str = "ride_cache_"
    strict_patches: bool = False
    serialize_patches: bool = True
    geocoder_base_url: str = "https://nominatim.openstreetmap.org"
    geocoder_timeout: float = 10.0
    geocoder_user_agent: str = "ridecache/0 (+https://pypi.org/project/ridecache/)"
    geocoder_language: str = "en"
    address_placeholder: str = "Address unavailable"
    sync: SyncConfig = dataclasses.field(default_factory=SyncConfig)

    def __post_init__(self) -> None:
        if not self.key_prefix:
            raise RideCacheConfigError("key_prefix must be non-empty")
        if self.geocoder_timeout <= 0:
            raise RideCacheConfigError("geocoder_timeout must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> RideCacheConfig:
        """Create configuration from ``RIDECACHE_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RideCacheConfig
            Populated configuration.
        """
        env = os.environ

        sync_kwargs: dict[str, Any] = {}
        _ENV_SYNC_MAP = {
            "RIDECACHE_SYNC_BROKER_HOST": "broker_host",
            "RIDECACHE_SYNC_TOPIC_TEMPLATE": "topic_template",
            "RIDECACHE_SYNC_USERNAME": "username",
            "RIDECACHE_SYNC_PASSWORD": "password",
        }
        for env_key, field_name in _ENV_SYNC_MAP.items():
            val = env.get(env_key)
            if val is not None:
                sync_kwargs[field_name] = val

        port_env = env.get("RIDECACHE_SYNC_BROKER_PORT")
        if port_env is not None:
            sync_kwargs["broker_port"] = _env_number("RIDECACHE_SYNC_BROKER_PORT", port_env, int)
        keepalive_env = env.get("RIDECACHE_SYNC_KEEPALIVE")
        if keepalive_env is not None:
            sync_kwargs["keepalive"] = _env_number("RIDECACHE_SYNC_KEEPALIVE", keepalive_env, int)
        sync_kwargs["enabled"] = _env_bool(env.get("RIDECACHE_SYNC_ENABLED"), False)
        sync_kwargs["tls"] = _env_bool(env.get("RIDECACHE_SYNC_TLS"), True)

        # Allow overriding sync fields via a nested dict
        sync_overrides = overrides.pop("sync", None)
        if isinstance(sync_overrides, dict):
            sync_kwargs.update(sync_overrides)
        elif isinstance(sync_overrides, SyncConfig):
            sync_kwargs = dataclasses.asdict(sync_overrides)

        _ENV_CONFIG_MAP = {
            "RIDECACHE_STORAGE_DIR": "storage_dir",
            "RIDECACHE_KEY_PREFIX": "key_prefix",
            "RIDECACHE_GEOCODER_BASE_URL": "geocoder_base_url",
            "RIDECACHE_GEOCODER_USER_AGENT": "geocoder_user_agent",
            "RIDECACHE_GEOCODER_LANGUAGE": "geocoder_language",
            "RIDECACHE_ADDRESS_PLACEHOLDER": "address_placeholder",
        }
        config_kwargs: dict[str, Any] = {"sync": SyncConfig(**sync_kwargs)}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout_env = env.get("RIDECACHE_GEOCODER_TIMEOUT")
        if timeout_env is not None and "geocoder_timeout" not in overrides:
            config_kwargs["geocoder_timeout"] = _env_number("RIDECACHE_GEOCODER_TIMEOUT", timeout_env, float)

        if "strict_patches" not in overrides:
            config_kwargs["strict_patches"] = _env_bool(env.get("RIDECACHE_STRICT_PATCHES"), False)
        if "serialize_patches" not in overrides:
            config_kwargs["serialize_patches"] = _env_bool(env.get("RIDECACHE_SERIALIZE_PATCHES"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
