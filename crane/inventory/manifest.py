# crane/inventory/manifest.py
from __future__ import annotations
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_snake

from crane.core.errors import ManifestError
from crane.semver import Version, parseVersion

logger = logging.getLogger(__name__)

__all__ = [
    "InstallInfo",
    "CratesFile",
    "ManifestEntry",
    "defaultManifestPath",
    "parseGitSource",
    "parseManifest",
    "loadManifest",
]



class InstallInfo(BaseModel):
    """One value of cargo's `.crates2.json` "installs" map."""
    model_config = ConfigDict(alias_generator=to_snake, populate_by_name=True, extra="ignore")

    versionReq: str | None = None
    bins: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    allFeatures: bool = False
    noDefaultFeatures: bool = False
    profile: str | None = None
    target: str | None = None
    rustc: str | None = None



class CratesFile(BaseModel):
    installs: dict[str, InstallInfo] = Field(default_factory=dict)



@dataclass(frozen=True, slots=True)
class ManifestEntry:
    name: str
    version: Version
    source: str
    features: tuple[str, ...] = ()
    noDefaultFeatures: bool = False
    gitLink: str | None = None
    localHash: str | None = None



def defaultManifestPath() -> Path:
    """Cargo keeps its install manifest at $CARGO_HOME/.crates2.json (~/.cargo by default)."""
    cargoHome = os.environ.get("CARGO_HOME")
    root = Path(cargoHome) if cargoHome else Path.home() / ".cargo"
    return root / ".crates2.json"



def parseGitSource(source: str) -> tuple[str, str | None] | None:
    """
    "(git+https://github.com/o/r#abc123)" -> ("https://github.com/o/r", "abc123")
    "(git+https://github.com/o/r)"        -> ("https://github.com/o/r", None)
    Registry or path sources              -> None
    """
    if not source.startswith("(git+") or not source.endswith(")"):
        return None
    inner = source[len("(git+"):-1]
    link, _sep, commit = inner.partition("#")
    if not link:
        return None
    return link, (commit or None)



def parseManifest(text: str) -> list[ManifestEntry]:
    """
    Parse the content of `.crates2.json`.

    Keys look like "ripgrep 14.1.0 (registry+https://github.com/rust-lang/crates.io-index)".
    Keys that don't split into exactly three parts, or carry an unparsable version, are skipped.
    """
    try:
        document = CratesFile.model_validate(json.loads(text))
    except (ValueError, ValidationError) as err:
        raise ManifestError(f"Failed to parse install manifest: {err}") from err

    entries: list[ManifestEntry] = []
    for key, info in document.installs.items():
        parts = key.split(" ")
        if len(parts) != 3:
            logger.error("Crate name %s is not recognized. Skipping", key)
            continue
        name, rawVersion, source = parts
        try:
            version = parseVersion(rawVersion)
        except ValueError:
            logger.error("Failed to parse version %s for crate %s. Skipping", rawVersion, name)
            continue

        gitLink = localHash = None
        gitInfo = parseGitSource(source)
        if gitInfo is not None:
            gitLink, localHash = gitInfo

        entries.append(ManifestEntry(
            name=name,
            version=version,
            source=source,
            features=tuple(info.features),
            noDefaultFeatures=info.noDefaultFeatures,
            gitLink=gitLink,
            localHash=localHash,
        ))
    return entries



def loadManifest(path: str | Path | None = None) -> list[ManifestEntry]:
    manifestPath = Path(path) if path is not None else defaultManifestPath()
    if not manifestPath.is_file():
        raise ManifestError(f"No install manifest found at {manifestPath}")
    entries = parseManifest(manifestPath.read_text(encoding="utf-8"))
    logger.info("Loaded %d crates from %s", len(entries), manifestPath)
    return entries
