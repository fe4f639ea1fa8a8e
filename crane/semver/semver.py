# crane/semver/semver.py
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

__all__ = ["Version", "parseVersion", "tryParseVersion", "isNewer"]



SEMVER_PATTERN_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*)"
    r"(?:\.(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)



def _identifierRank(ident: str) -> tuple[int, int | str]:
    # Numeric identifiers sort before alphanumeric ones, numerically among themselves
    return (0, int(ident)) if ident.isdigit() else (1, ident)



@total_ordering
@dataclass(frozen=True)
class Version:
    """
    A parsed semantic version. Equality, hashing and ordering follow
    semver precedence, so build metadata never makes two versions differ.
    """
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    @property
    def isPrerelease(self) -> bool:
        return len(self.prerelease) > 0

    @property
    def precedence(self) -> tuple:
        # A plain release ranks above any of its prereleases
        return (
            self.major,
            self.minor,
            self.patch,
            not self.prerelease,
            tuple(_identifierRank(ident) for ident in self.prerelease),
        )

    def __str__(self) -> str:
        text = ".".join(str(num) for num in (self.major, self.minor, self.patch))
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Version):
            return self.precedence == other.precedence
        return NotImplemented

    def __lt__(self, other: object) -> bool:
        if isinstance(other, Version):
            return self.precedence < other.precedence
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.precedence)



def parseVersion(raw: str) -> Version:
    """
    Parse a semantic version string as published on crates.io.

    Accepted forms (examples):
        "1.2.3"
        "1.2.3-alpha.1"
        "1.2.3+build.1"
        "1.2.3-rc.1+build.5"
        "v1.2.3"        (a single leading 'v' is dropped)

    Rejected:
        "1", "1.2" (cargo always records full versions), "01.2.3", "1.2.3.4", "1.2.3-" etc.
    """
    if not isinstance(raw, str):
        raise TypeError(f"Version must be given as a string, not {type(raw).__name__}")

    text = raw.strip()
    if not text:
        raise ValueError("Version string is empty")

    if text.startswith("v") and len(text) > 1 and text[1].isdigit():
        text = text[1:]

    mtch = SEMVER_PATTERN_RE.match(text)
    if not mtch:
        raise ValueError(f"Invalid semantic version {raw!r}")

    prereleaseGroup = mtch.group("prerelease")
    buildGroup = mtch.group("build")

    return Version(
        major=int(mtch.group("major")),
        minor=int(mtch.group("minor")),
        patch=int(mtch.group("patch")),
        prerelease=tuple(prereleaseGroup.split(".")) if prereleaseGroup else (),
        build=tuple(buildGroup.split(".")) if buildGroup else (),
    )



def tryParseVersion(raw: str | None) -> Version | None:
    if raw is None:
        return None
    try:
        return parseVersion(raw)
    except (TypeError, ValueError):
        return None



def isNewer(candidate: Version | None, current: Version) -> bool:
    """True when `candidate` is known and strictly newer than `current`."""
    return candidate is not None and candidate > current
