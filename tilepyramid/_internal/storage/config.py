"""
Object storage configuration

Endpoints and credentials are read from the environment, one set of
variables per storage kind:

    TILEPYRAMID_S3_URL, TILEPYRAMID_S3_KEY, TILEPYRAMID_S3_SECRETKEY, TILEPYRAMID_S3_REGION
    TILEPYRAMID_SWIFT_URL, ...
    TILEPYRAMID_CEPH_URL, ...

Swift and Ceph are reached through their S3-compatible gateways.
"""

import os
from dataclasses import dataclass
from typing import Any

from tilepyramid._internal.storage.base import StorageType

ENV_PREFIX = "TILEPYRAMID"
REQUIRED_SUFFIXES = ("URL", "KEY", "SECRETKEY")


def _env_name(kind: StorageType, suffix: str) -> str:
    return f"{ENV_PREFIX}_{kind.value}_{suffix}"


def missing_environment(kind: StorageType) -> list[str]:
    """Names of the required variables that are not set for this kind"""
    if kind is StorageType.FILE:
        return []
    return [
        _env_name(kind, suffix)
        for suffix in REQUIRED_SUFFIXES
        if not os.environ.get(_env_name(kind, suffix))
    ]


@dataclass(frozen=True)
class ObjectStorageConfig:
    """
    Connection settings for one object storage kind

    Attributes:
        endpoint_url: Gateway URL (e.g. "http://localhost:9000")
        access_key_id: Access key
        secret_access_key: Secret key
        region: Optional region name
    """

    endpoint_url: str
    access_key_id: str
    secret_access_key: str
    region: str | None = None

    @classmethod
    def from_env(cls, kind: StorageType) -> "ObjectStorageConfig":
        """
        Build the configuration of a storage kind from environment variables

        Raises:
            ValueError: If kind is FILE or a required variable is missing
        """
        if kind is StorageType.FILE:
            raise ValueError("FILE storage has no object storage configuration")

        missing = missing_environment(kind)
        if missing:
            raise ValueError(
                f"Environment variable(s) missing for {kind.value} storage: {', '.join(missing)}"
            )

        return cls(
            endpoint_url=os.environ[_env_name(kind, "URL")],
            access_key_id=os.environ[_env_name(kind, "KEY")],
            secret_access_key=os.environ[_env_name(kind, "SECRETKEY")],
            region=os.environ.get(_env_name(kind, "REGION")) or None,
        )

    def to_store_config(self) -> dict[str, Any]:
        """Keyword configuration for obstore's S3Store"""
        config: dict[str, Any] = {
            "endpoint": self.endpoint_url,
            "access_key_id": self.access_key_id,
            "secret_access_key": self.secret_access_key,
        }
        if self.region:
            config["region"] = self.region
        return config

    @property
    def allow_http(self) -> bool:
        return self.endpoint_url.startswith("http://")
