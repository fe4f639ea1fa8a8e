# crane/semver/__init__.py
from .semver import Version, parseVersion, tryParseVersion, isNewer

__all__ = ["Version", "parseVersion", "tryParseVersion", "isNewer"]
