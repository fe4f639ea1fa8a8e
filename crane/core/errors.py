# crane/core/errors.py
from __future__ import annotations

__all__ = [
    "CraneError",
    "ConfigError",
    "ManifestError",
    "RegistryError",
    "MalformedResponseError",
]



class CraneError(Exception):
    """Base class for every error Crane raises on purpose."""
    pass



class ConfigError(CraneError):
    """Settings failed to load or did not pass validation."""
    pass



class ManifestError(CraneError):
    """The install manifest is missing or cannot be parsed."""
    pass



class RegistryError(CraneError):
    """
    Talking to the package registry or the VCS host failed.

    `status` is the HTTP status when the server answered, None for transport errors.
    """
    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status



class MalformedResponseError(RegistryError):
    """The server answered, but the payload is not what we expected."""
    pass
