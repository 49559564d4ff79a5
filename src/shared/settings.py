"""Runtime configuration read from environment variables."""

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    """External configuration consumed by the inventory core.

    Values are owned by the deployment; defaults suit local development.
    """

    environment: str = "development"
    inventory_provider: str = "fake"
    provider_base_url: str = "http://localhost:8080"
    provider_timeout: float = 10.0
    lookup_timeout: float = 12.0
    document_store_url: str = "memory://"
    document_store_max_batch: int = 500
    sync_batch_size: int = 450
    sync_lease_ttl: float = 300.0
    fallback_latitude: float = 40.7580
    fallback_longitude: float = -73.9855

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("PROTEAN_ENV", cls.environment),
            inventory_provider=os.getenv("INVENTORY_PROVIDER", cls.inventory_provider).lower(),
            provider_base_url=os.getenv("PROVIDER_BASE_URL", cls.provider_base_url),
            provider_timeout=_env_float("PROVIDER_TIMEOUT", cls.provider_timeout),
            lookup_timeout=_env_float("LOOKUP_TIMEOUT", cls.lookup_timeout),
            document_store_url=os.getenv("DOCUMENT_STORE_URL", cls.document_store_url),
            document_store_max_batch=_env_int("DOCUMENT_STORE_MAX_BATCH", cls.document_store_max_batch),
            sync_batch_size=_env_int("SYNC_BATCH_SIZE", cls.sync_batch_size),
            sync_lease_ttl=_env_float("SYNC_LEASE_TTL", cls.sync_lease_ttl),
            fallback_latitude=_env_float("FALLBACK_LATITUDE", cls.fallback_latitude),
            fallback_longitude=_env_float("FALLBACK_LONGITUDE", cls.fallback_longitude),
        )

    @property
    def fallback_location(self) -> tuple[float, float]:
        return (self.fallback_latitude, self.fallback_longitude)
