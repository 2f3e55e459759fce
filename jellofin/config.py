"""Configuration management"""

import socket
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .library.entities import COLLECTION_TYPES
from .library.idhash import id_hash


class ConfigError(Exception):
    """Configuration file missing or invalid"""


class Settings(BaseSettings):
    """Process settings, overridable from the environment or .env"""

    model_config = SettingsConfigDict(
        env_prefix="JELLOFIN_", env_file=".env", extra="ignore"
    )

    CONFIG_FILE: str = "jellofin-server.yaml"
    LOG_LEVEL: str = "INFO"

    # Background jobs (seconds)
    USERDATA_FLUSH_INTERVAL: int = 10
    ACCESSTOKEN_FLUSH_INTERVAL: int = 60
    RESCAN_INTERVAL: int = 60
    SCAN_PACE: float = 0.5
    TLS_RELOAD_INTERVAL: int = 15


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ListenConfig(_Section):
    address: str = ""
    port: int = 8096
    tlscert: str = ""
    tlskey: str = ""
    ipacl: List[str] = Field(default_factory=list)

    @field_validator("ipacl", mode="before")
    @classmethod
    def split_acl(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value


class SqliteConfig(_Section):
    filename: str = "jellofin.db"


class DatabaseConfig(_Section):
    sqlite: SqliteConfig = Field(default_factory=SqliteConfig)


class CollectionConfig(_Section):
    id: str = ""
    name: str
    type: str
    directory: str
    baseurl: str = ""
    hlsserver: str = ""

    @field_validator("type")
    @classmethod
    def known_type(cls, value: str) -> str:
        if value not in COLLECTION_TYPES:
            raise ValueError(f"unknown collection type {value!r}")
        return value


class JellyfinConfig(_Section):
    serverid: str = ""
    servername: str = "Jellofin"
    autoregister: bool = False
    imagequalityposter: int = 0
    quickconnect: bool = False


class ServerConfig(_Section):
    """Contents of jellofin-server.yaml"""

    listen: ListenConfig = Field(default_factory=ListenConfig)
    appdir: str = ""
    cachedir: str = "cache"
    dbdir: str = ""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logfile: str = "stdout"
    collections: List[CollectionConfig] = Field(default_factory=list)
    jellyfin: JellyfinConfig = Field(default_factory=JellyfinConfig)

    @property
    def database_path(self) -> Path:
        if self.dbdir:
            return Path(self.dbdir) / "jellofin.db"
        return Path(self.database.sqlite.filename)

    @property
    def server_id(self) -> str:
        return self.jellyfin.serverid or id_hash(socket.gethostname())

    @property
    def server_name(self) -> str:
        return self.jellyfin.servername or "Jellofin"

    @property
    def tls_enabled(self) -> bool:
        return bool(self.listen.tlscert and self.listen.tlskey)


def load_config(path: Optional[str] = None) -> ServerConfig:
    """Read and validate the YAML configuration file"""
    path = path or settings.CONFIG_FILE
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing config file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    # keys are case-insensitive
    raw = _lower_keys(raw)
    try:
        return ServerConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def _lower_keys(value):
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(v) for v in value]
    return value


# Global settings instance
settings = Settings()
