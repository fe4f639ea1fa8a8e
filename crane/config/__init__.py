# crane/config/__init__.py
from .providers import ConfigProvider, OverrideProvider, DefaultsProvider, FileProvider
from .store import ConfigStore
from .settings import (
    DEFAULTS,
    CraneSettings,
    WorkerSettings,
    RegistrySettings,
    LoggingSettings,
    loadSettings,
    defaultConfigPath,
    defaultDataDir,
)

__all__ = [
    "ConfigProvider",
    "OverrideProvider",
    "DefaultsProvider",
    "FileProvider",
    "ConfigStore",
    "DEFAULTS",
    "CraneSettings",
    "WorkerSettings",
    "RegistrySettings",
    "LoggingSettings",
    "loadSettings",
    "defaultConfigPath",
    "defaultDataDir",
]
