"""
Shared configuration management for the Store Access Layer.
"""

from typing import Optional, Tuple, Type, TypeVar

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias=AliasChoices("ACCESS_ENV", "env"))
    log_level: str = Field(default="info", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))

    # External store
    store_addr: str = Field(validation_alias=AliasChoices("REDIS_ADDR", "REDIS_CACHE", "store_addr"))

    @field_validator("store_addr")
    @classmethod
    def _store_addr_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("store address must not be empty")
        return value.strip()

    @property
    def store_url(self) -> str:
        """Store address as a redis URL; bare host:port gets the redis scheme."""
        if "://" in self.store_addr:
            return self.store_addr
        return f"redis://{self.store_addr}"


class ServiceConfig(BaseConfig):
    """Configuration shared by the HTTP services."""

    bind_addr: str = Field(validation_alias=AliasChoices("BIND_ADDR", "bind_addr"))
    pool_size: int = Field(default=10, ge=1, validation_alias=AliasChoices("POOL_SIZE", "pool_size"))
    # None blocks until a connection frees up
    pool_timeout: Optional[float] = Field(
        default=None, gt=0, validation_alias=AliasChoices("POOL_TIMEOUT", "pool_timeout")
    )

    @field_validator("bind_addr")
    @classmethod
    def _bind_addr_has_port(cls, value: str) -> str:
        parse_bind_addr(value)
        return value

    @property
    def host(self) -> str:
        return parse_bind_addr(self.bind_addr)[0]

    @property
    def port(self) -> int:
        return parse_bind_addr(self.bind_addr)[1]


class CacherConfig(ServiceConfig):
    """Cacher service configuration."""

    cache_ttl_seconds: int = Field(
        default=666, gt=0, validation_alias=AliasChoices("CACHE_TTL_SECONDS", "cache_ttl_seconds")
    )


class QueuerConfig(ServiceConfig):
    """Queuer service configuration."""

    queue_name: str = Field(min_length=1, validation_alias=AliasChoices("REDIS_QUEUE", "queue_name"))


class MessengerConfig(BaseConfig):
    """Messenger CLI configuration."""

    channel_name: str = Field(min_length=1, validation_alias=AliasChoices("CHANNEL_NAME", "channel_name"))
    user_id: str = Field(min_length=1, validation_alias=AliasChoices("USER_ID", "user_id"))
    receive_timeout: float = Field(
        default=1.0, gt=0, validation_alias=AliasChoices("RECEIVE_TIMEOUT", "receive_timeout")
    )


def parse_bind_addr(bind_addr: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``:port``) into its parts. An empty host binds all interfaces."""
    host, sep, port = bind_addr.strip().rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"bind address must look like host:port or :port, got {bind_addr!r}")
    port_number = int(port)
    if not 0 < port_number < 65536:
        raise ValueError(f"bind port out of range: {port_number}")
    return host.strip("[]") or "0.0.0.0", port_number


ConfigT = TypeVar("ConfigT", bound=BaseConfig)


def load_config(config_cls: Type[ConfigT], **overrides) -> ConfigT:
    """Build a config from the environment, failing fast on missing or invalid values."""
    try:
        return config_cls(**overrides)
    except ValidationError as e:
        problems = {
            ".".join(str(part) for part in error["loc"]) or "config": error["msg"]
            for error in e.errors()
        }
        raise ConfigurationError(
            f"Invalid {config_cls.__name__}: " + ", ".join(sorted(problems)),
            problems
        ) from e
