"""
ScyllaDB Adapter Configuration
"""

from typing import Any, Dict, List, Literal, Optional

from cassandra import ConsistencyLevel
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScyllaSettings(BaseSettings):
    """Connection and behaviour settings for the adapter"""

    model_config = SettingsConfigDict(env_prefix="SCYLLA_", extra="ignore")

    # Cluster
    contact_points: List[str] = Field(default_factory=lambda: ["127.0.0.1"])
    port: int = 9042
    local_data_center: str = "datacenter1"
    keyspace: str = "platformq"

    # Authentication
    username: Optional[str] = None
    password: Optional[str] = None

    # Query behaviour
    consistency: str = "ONE"
    read_timeout: float = 60.0  # seconds
    connect_timeout: float = 10.0
    prepared_cache_size: int = 512

    # Schema management
    replication_strategy: Dict[str, Any] = Field(
        default_factory=lambda: {"class": "SimpleStrategy", "replication_factor": 1}
    )
    migration: Literal["safe", "alter", "drop"] = "safe"

    # Resilience
    connect_attempts: int = Field(default=3, ge=1)
    bulk_failure_policy: Literal["first_error", "collect_all"] = "first_error"

    @field_validator("consistency")
    @classmethod
    def _check_consistency(cls, value: str) -> str:
        name = value.upper()
        if name not in ConsistencyLevel.name_to_value:
            raise ValueError(f"Unknown consistency level: {value}")
        return name

    @property
    def consistency_level(self) -> int:
        return ConsistencyLevel.name_to_value[self.consistency]

    @classmethod
    def from_options(cls, options: Optional[Dict[str, Any]] = None, **overrides) -> "ScyllaSettings":
        """Build settings from an options mapping.

        Accepts both the snake_case field names and the camelCase shape used by
        existing service definitions (``contactPoints``, ``localDataCenter``,
        ``authProvider``, ``ormOptions``).
        """
        options = dict(options or {})
        values: Dict[str, Any] = {}

        renames = {
            "contactPoints": "contact_points",
            "localDataCenter": "local_data_center",
        }
        for key, value in options.items():
            if key in ("authProvider", "ormOptions"):
                continue
            values[renames.get(key, key)] = value

        auth = options.get("authProvider") or {}
        if auth.get("username") is not None:
            values["username"] = auth["username"]
        if auth.get("password") is not None:
            values["password"] = auth["password"]

        orm_options = options.get("ormOptions") or {}
        if orm_options.get("defaultReplicationStrategy"):
            values["replication_strategy"] = orm_options["defaultReplicationStrategy"]
        if orm_options.get("migration"):
            values["migration"] = orm_options["migration"]

        values.update(overrides)
        return cls(**values)
