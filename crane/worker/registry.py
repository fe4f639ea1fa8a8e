# crane/worker/registry.py
from __future__ import annotations
import logging
from typing import Any
from collections.abc import Mapping, Sequence
from urllib.parse import quote, urlparse

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_snake

from crane.config.settings import RegistrySettings
from crane.core.errors import MalformedResponseError, RegistryError
from crane.core.logging import logContext
from crane.http.client import createClient, request
from crane.semver import parseVersion
from .events import (
    CommitLookupFailed,
    CommitLookupSucceeded,
    Emit,
    Log,
    VersionLookupDone,
    VersionLookupFailed,
    VersionLookupSucceeded,
)
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

__all__ = [
    "NO_DESCRIPTION",
    "CrateData",
    "CrateVersionData",
    "CrateResponse",
    "CrateMetadata",
    "RegistryClient",
    "parseRepoLink",
]

NO_DESCRIPTION = "The crate has no description"



# ----------------------------------------------
#           crates.io response models
# ----------------------------------------------

class _RegistryModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_snake,
        populate_by_name=True,
        extra="ignore",
    )



class CrateData(_RegistryModel):
    name: str
    description: str | None = None
    maxVersion: str
    repository: str | None = None
    homepage: str | None = None



class CrateVersionData(_RegistryModel):
    num: str
    features: dict[str, list[str]] = Field(default_factory=dict)
    yanked: bool = False



class CrateResponse(_RegistryModel):
    """GET /api/v1/crates/{name}"""
    crate: CrateData
    versions: list[CrateVersionData] = Field(default_factory=list)



class CrateMetadata(BaseModel):
    """What the worker reports for one crate."""
    name: str
    description: str
    latestVersion: str
    features: tuple[str, ...] = ()
    repository: str | None = None

    @classmethod
    def fromResponse(cls, resp: CrateResponse) -> CrateMetadata:
        data = resp.crate
        try:
            parseVersion(data.maxVersion)
        except ValueError as err:
            raise MalformedResponseError(f"unparsable max_version {data.maxVersion!r}: {err}") from err

        # Features of the newest published version; crates.io lists versions newest first
        features: list[str] = []
        if resp.versions:
            newest = next((v for v in resp.versions if v.num == data.maxVersion), resp.versions[0])
            features = sorted(newest.features)

        return cls(
            name=data.name,
            description=(data.description or "").strip() or NO_DESCRIPTION,
            latestVersion=data.maxVersion,
            features=tuple(features),
            repository=data.repository or data.homepage,
        )



def parseRepoLink(link: str) -> tuple[str, str] | None:
    """
    Split a VCS URL into (owner, repo) using its last two path segments.

    "https://github.com/owner/repo"      -> ("owner", "repo")
    "https://github.com/owner/repo.git/" -> ("owner", "repo")
    "owner/repo"                         -> ("owner", "repo")
    Anything with fewer than two segments -> None
    """
    if not isinstance(link, str):
        return None
    text = link.strip()
    if not text:
        return None
    path = urlparse(text).path if "://" in text else text
    parts = [part for part in path.strip("/").split("/") if part]
    if len(parts) < 2:
        return None
    owner, repo = parts[-2], parts[-1]
    if repo.endswith(".git"):
        repo = repo[:-len(".git")]
    if not owner or not repo:
        return None
    return owner, repo



# ----------------------------------------------
#                Registry client
# ----------------------------------------------

class RegistryClient:
    """
    crates.io metadata lookups plus GitHub "latest commit" lookups.

    One instance lives for one worker command; close it with aclose() or use `async with`.
    """
    def __init__(self, settings: RegistrySettings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._client = createClient(
            timeoutMs=settings.timeoutMs,
            headers={"User-Agent": settings.userAgent, "Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, excType, exc, tb) -> None:
        await self.aclose()

    # ----- single lookups -----

    async def fetchCrate(self, name: str) -> CrateMetadata:
        """
        Raises:
            HTTPError / RegistryError: the registry could not be reached or refused the request
            MalformedResponseError: the payload did not have the expected shape
        """
        url = f"{self.settings.url.rstrip('/')}/api/v1/crates/{quote(name, safe='')}"
        out = await request(self._client, "GET", url)
        payload = out.get("json")
        if payload is None:
            raise MalformedResponseError(f"registry answered without JSON for {name!r}")
        try:
            resp = CrateResponse.model_validate(payload)
        except ValidationError as err:
            raise MalformedResponseError(f"unexpected registry payload for {name!r}: {err}") from err
        return CrateMetadata.fromResponse(resp)

    async def fetchLatestCommit(self, owner: str, repo: str) -> str | None:
        """SHA of the most recent commit on the default branch, or None when the repo has none."""
        url = f"{self.settings.githubApiUrl.rstrip('/')}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/commits"
        out = await request(
            self._client,
            "GET",
            url,
            params={"per_page": 1},
            # GitHub rejects requests without a User-Agent
            headers={"User-Agent": self.settings.userAgent, "Accept": "application/vnd.github+json"},
        )
        commits: Any = out.get("json")
        if not isinstance(commits, list):
            raise MalformedResponseError(f"commit list expected for {owner}/{repo}, got {type(commits).__name__}")
        if not commits:
            return None
        first = commits[0]
        sha = first.get("sha") if isinstance(first, Mapping) else None
        if not isinstance(sha, str) or not sha:
            raise MalformedResponseError(f"commit without sha for {owner}/{repo}")
        return sha

    # ----- batches -----

    async def resolveVersions(
        self,
        names: Sequence[str],
        emit: Emit,
        *,
        rateLimitMs: int = 1000,
        limiter: RateLimiter | None = None,
    ) -> None:
        """
        One success-or-failure event per name, in order, then VersionLookupDone.

        Requests are strictly sequential: the event for index i is emitted
        before the request for i+1 starts.
        """
        limiter = limiter or RateLimiter.fromMs(rateLimitMs)
        try:
            for index, name in enumerate(names):
                with logContext(package=name, index=index):
                    await limiter.wait()
                    logger.info("Fetching crate: %s", name)
                    try:
                        meta = await self.fetchCrate(name)
                    except MalformedResponseError as err:
                        logger.error("Malformed registry response for %s: %s", name, err)
                        await emit(Log(f"Malformed registry response for {name}: {err}"))
                        await emit(VersionLookupFailed(index=index, name=name, reason=str(err)))
                        continue
                    except RegistryError as err:
                        logger.error("Failed to fetch crate %s: %s", name, err)
                        await emit(VersionLookupFailed(index=index, name=name, reason=str(err)))
                        continue
                    except Exception as err:
                        logger.exception("Unexpected error while fetching crate %s", name)
                        await emit(VersionLookupFailed(index=index, name=name, reason=f"{type(err).__name__}: {err}"))
                        continue

                    await emit(VersionLookupSucceeded(
                        index=index,
                        name=name,
                        description=meta.description,
                        latestVersion=meta.latestVersion,
                        features=meta.features,
                        repository=meta.repository,
                    ))
        finally:
            await emit(VersionLookupDone())

    async def resolveCommits(self, repoLinks: Mapping[str, str], emit: Emit) -> None:
        """
        One event per pair: CommitLookupSucceeded, or CommitLookupFailed when the URL
        cannot be split into owner/repo, the repo has no commits, or the lookup fails.
        """
        for name, link in repoLinks.items():
            with logContext(package=name):
                parsed = parseRepoLink(link)
                if parsed is None:
                    logger.warning("Cannot derive owner/repo from %r for %s", link, name)
                    await emit(CommitLookupFailed(name=name, reason=f"unrecognised repository URL {link!r}"))
                    continue

                owner, repo = parsed
                try:
                    sha = await self.fetchLatestCommit(owner, repo)
                except RegistryError as err:
                    logger.error("Failed to fetch commit for %s: %s", name, err)
                    await emit(CommitLookupFailed(name=name, reason=str(err)))
                    continue
                except Exception as err:
                    logger.exception("Unexpected error while fetching commit for %s", name)
                    await emit(CommitLookupFailed(name=name, reason=f"{type(err).__name__}: {err}"))
                    continue

                if sha is None:
                    await emit(CommitLookupFailed(name=name, reason=f"no commits in {owner}/{repo}"))
                    continue
                await emit(CommitLookupSucceeded(name=name, commit=sha))
