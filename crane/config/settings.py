# crane/config/settings.py
from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from crane import APP_NAME, __version__
from crane.core.errors import ConfigError
from .providers import ConfigProvider, DefaultsProvider, FileProvider, OverrideProvider
from .store import ConfigStore

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULTS",
    "WorkerSettings",
    "RegistrySettings",
    "LoggingSettings",
    "CraneSettings",
    "defaultDataDir",
    "defaultConfigPath",
    "buildConfigStore",
    "loadSettings",
]



# Shipped defaults; the user's config file and runtime overrides layer on top.
DEFAULTS: dict[str, Any] = {
    "worker": {
        "packageManager": "cargo",
        "rateLimitMs": 1000,
        "commandCapacity": 100,
    },
    "registry": {
        "url": "https://crates.io",
        "githubApiUrl": "https://api.github.com",
        "contact": "crane@users.noreply.github.com",
        "timeoutMs": 30_000,
    },
    "logging": {
        "devMode": False,
        "file": None,
    },
}



class WorkerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    packageManager: str = Field(default="cargo", min_length=1)
    rateLimitMs: int = Field(default=1000, ge=0)   # Minimum gap between registry calls
    commandCapacity: int = Field(default=100, ge=1) # Bounded inbound command channel



class RegistrySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = "https://crates.io"
    githubApiUrl: str = "https://api.github.com"
    contact: str = Field(default="crane@users.noreply.github.com", min_length=1)
    timeoutMs: int = Field(default=30_000, gt=0)

    @property
    def userAgent(self) -> str:
        """crates.io asks for an identifying agent with a way to reach the author."""
        return f"{APP_NAME}/{__version__} ({self.contact})"



class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    devMode: bool = False
    file: str | None = None



class CraneSettings(BaseModel):
    """Validated, effective configuration."""
    model_config = ConfigDict(extra="ignore")

    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)



def defaultDataDir() -> Path:
    """Local data directory for Crane (cache file lives here)."""
    base = os.environ.get("XDG_DATA_HOME")
    root = Path(base) if base else Path.home() / ".local" / "share"
    return root / APP_NAME



def defaultConfigPath() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / APP_NAME / "config.json5"



def buildConfigStore(
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ConfigStore:
    """
    Layers, bottom to top: shipped defaults, user file (when present), runtime overrides.
    """
    providers: list[ConfigProvider] = [DefaultsProvider(DEFAULTS)]
    filePath = Path(path) if path is not None else defaultConfigPath()
    if path is not None or filePath.exists():
        providers.append(FileProvider(filePath))
    providers.append(OverrideProvider(overrides))
    return ConfigStore(providers=providers, validator=CraneSettings.model_validate)



def loadSettings(
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> CraneSettings:
    """
    Load and validate settings.

    Raises:
        ConfigError: the effective document does not validate, or the file is not a JSON object.
    """
    try:
        store = buildConfigStore(path, overrides)
        settings = CraneSettings.model_validate(store.merged())
    except (ValidationError, TypeError, IsADirectoryError) as err:
        raise ConfigError(f"Invalid configuration: {err}") from err
    logger.debug("Settings loaded: %s", settings.model_dump())
    return settings
