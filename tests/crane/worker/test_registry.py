# tests/crane/worker/test_registry.py
from __future__ import annotations
import time

import httpx
import pytest

from crane.config.settings import RegistrySettings
from crane.core.errors import MalformedResponseError
from crane.http.client import HTTPError
from crane.worker.events import (
    CommitLookupFailed,
    CommitLookupSucceeded,
    Log,
    VersionLookupDone,
    VersionLookupFailed,
    VersionLookupSucceeded,
)
from crane.worker.ratelimit import RateLimiter
from crane.worker.registry import NO_DESCRIPTION, RegistryClient, parseRepoLink

SETTINGS = RegistrySettings(url="https://registry.test", githubApiUrl="https://api.vcs.test", contact="tests@example.com")


def crateBody(name: str, version: str, *, description: str | None = "A crate", features=None, repository=None) -> dict:
    return {
        "crate": {
            "name": name,
            "description": description,
            "max_version": version,
            "repository": repository,
            "homepage": None,
        },
        "versions": [
            {"num": version, "features": features or {}, "yanked": False},
            {"num": "0.0.1", "features": {"old": []}, "yanked": False},
        ],
    }


def registryHandler(crates: dict[str, dict], calls: list[str] | None = None):
    def handler(req: httpx.Request) -> httpx.Response:
        name = req.url.path.rsplit("/", 1)[-1]
        if calls is not None:
            calls.append(name)
        if name not in crates:
            return httpx.Response(404, json={"errors": [{"detail": "Not Found"}]})
        return httpx.Response(200, json=crates[name])
    return handler


class Collector:
    def __init__(self) -> None:
        self.events: list = []

    async def __call__(self, event) -> None:
        self.events.append(event)


def _noLimit() -> RateLimiter:
    return RateLimiter(0)


# ----------------------------
# parseRepoLink
# ----------------------------

@pytest.mark.parametrize(
    "link, expected",
    [
        ("https://github.com/owner/repo", ("owner", "repo")),
        ("https://github.com/owner/repo.git", ("owner", "repo")),
        ("https://github.com/owner/repo/", ("owner", "repo")),
        ("owner/repo", ("owner", "repo")),
        ("https://github.com/repo", None),
        ("", None),
        ("   ", None),
    ],
)
def test_parseRepoLink(link, expected):
    assert parseRepoLink(link) == expected


# ----------------------------
# fetchCrate
# ----------------------------

@pytest.mark.asyncio
async def test_fetchCrate_mapsMetadata():
    seen: list[httpx.Request] = []
    body = crateBody("alpha", "2.0.0", features={"tls": [], "default": ["tls"], "cli": []}, repository="https://github.com/o/alpha")

    def handler(req: httpx.Request) -> httpx.Response:
        seen.append(req)
        return httpx.Response(200, json=body)

    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(handler)) as client:
        meta = await client.fetchCrate("alpha")

    assert meta.name == "alpha"
    assert meta.latestVersion == "2.0.0"
    assert meta.features == ("cli", "default", "tls")
    assert meta.repository == "https://github.com/o/alpha"
    assert str(seen[0].url) == "https://registry.test/api/v1/crates/alpha"
    assert seen[0].headers["User-Agent"] == "crane/0.3.0 (tests@example.com)"


@pytest.mark.asyncio
async def test_fetchCrate_missingDescriptionUsesPlaceholder():
    body = crateBody("alpha", "1.0.0", description="  ")
    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(lambda req: httpx.Response(200, json=body))) as client:
        meta = await client.fetchCrate("alpha")
    assert meta.description == NO_DESCRIPTION


@pytest.mark.asyncio
async def test_fetchCrate_homepageFallback():
    body = crateBody("alpha", "1.0.0")
    body["crate"]["homepage"] = "https://alpha.example"
    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(lambda req: httpx.Response(200, json=body))) as client:
        meta = await client.fetchCrate("alpha")
    assert meta.repository == "https://alpha.example"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"unexpected": True},
        {"crate": {"name": "alpha", "max_version": "not-a-version"}},
        {"crate": {"name": "alpha"}},
    ],
)
async def test_fetchCrate_malformedPayload(body):
    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(lambda req: httpx.Response(200, json=body))) as client:
        with pytest.raises(MalformedResponseError):
            await client.fetchCrate("alpha")


@pytest.mark.asyncio
async def test_fetchCrate_notFound():
    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(registryHandler({}))) as client:
        with pytest.raises(HTTPError) as excInfo:
            await client.fetchCrate("ghost")
    assert excInfo.value.status == 404


# ----------------------------
# resolveVersions
# ----------------------------

@pytest.mark.asyncio
async def test_resolveVersions_oneEventPerNameInOrderThenDone():
    crates = {"alpha": crateBody("alpha", "2.0.0"), "gamma": crateBody("gamma", "0.3.1")}
    out = Collector()

    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(registryHandler(crates))) as client:
        await client.resolveVersions(["alpha", "beta", "gamma"], out, limiter=_noLimit())

    lookups = [event for event in out.events if not isinstance(event, Log)]
    assert len(lookups) == 4
    assert isinstance(lookups[0], VersionLookupSucceeded)
    assert (lookups[0].index, lookups[0].name, lookups[0].latestVersion) == (0, "alpha", "2.0.0")
    assert isinstance(lookups[1], VersionLookupFailed)
    assert (lookups[1].index, lookups[1].name) == (1, "beta")
    assert "404" in lookups[1].reason
    assert isinstance(lookups[2], VersionLookupSucceeded)
    assert (lookups[2].index, lookups[2].name) == (2, "gamma")
    assert lookups[3] == VersionLookupDone()
    assert out.events[-1] == VersionLookupDone()


@pytest.mark.asyncio
async def test_resolveVersions_emptyListOnlyDone():
    out = Collector()
    calls: list[str] = []
    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(registryHandler({}, calls))) as client:
        await client.resolveVersions([], out, limiter=_noLimit())
    assert out.events == [VersionLookupDone()]
    assert calls == []


@pytest.mark.asyncio
async def test_resolveVersions_malformedVersionLogsAndFails():
    crates = {"alpha": crateBody("alpha", "garbage")}
    out = Collector()

    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(registryHandler(crates))) as client:
        await client.resolveVersions(["alpha"], out, limiter=_noLimit())

    assert isinstance(out.events[0], Log)
    assert "alpha" in out.events[0].text
    assert isinstance(out.events[1], VersionLookupFailed)
    assert out.events[1].index == 0
    assert out.events[2] == VersionLookupDone()


@pytest.mark.asyncio
async def test_resolveVersions_unexpectedErrorOnFirstNameStillReportsSecond():
    inner = registryHandler({"beta": crateBody("beta", "1.2.0")})

    def handler(req: httpx.Request) -> httpx.Response:
        if req.url.path.endswith("/alpha"):
            raise RuntimeError("decoder exploded")
        return inner(req)

    out = Collector()
    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(handler)) as client:
        await client.resolveVersions(["alpha", "beta"], out, limiter=_noLimit())

    assert isinstance(out.events[0], VersionLookupFailed)
    assert (out.events[0].index, out.events[0].name) == (0, "alpha")
    assert out.events[0].reason == "RuntimeError: decoder exploded"
    assert isinstance(out.events[1], VersionLookupSucceeded)
    assert (out.events[1].index, out.events[1].latestVersion) == (1, "1.2.0")
    assert out.events[2:] == [VersionLookupDone()]


@pytest.mark.asyncio
async def test_resolveVersions_unusableRegistryUrl():
    settings = RegistrySettings(url="https://crates.io:notaport")
    calls: list[str] = []
    out = Collector()

    async with RegistryClient(settings, transport=httpx.MockTransport(registryHandler({}, calls))) as client:
        await client.resolveVersions(["alpha", "beta"], out, limiter=_noLimit())

    assert [type(event) for event in out.events] == [VersionLookupFailed, VersionLookupFailed, VersionLookupDone]
    assert [event.name for event in out.events[:2]] == ["alpha", "beta"]
    assert all("InvalidURL" in event.reason for event in out.events[:2])
    assert calls == []


@pytest.mark.asyncio
async def test_resolveVersions_eventEmittedBeforeNextRequest():
    crates = {name: crateBody(name, "1.0.0") for name in ("a", "b", "c")}
    timeline: list[str] = []

    def handler(req: httpx.Request) -> httpx.Response:
        timeline.append("request:" + req.url.path.rsplit("/", 1)[-1])
        return registryHandler(crates)(req)

    async def emit(event) -> None:
        if isinstance(event, VersionLookupSucceeded):
            timeline.append("event:" + event.name)

    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(handler)) as client:
        await client.resolveVersions(["a", "b", "c"], emit, limiter=_noLimit())

    assert timeline == ["request:a", "event:a", "request:b", "event:b", "request:c", "event:c"]


@pytest.mark.asyncio
async def test_resolveVersions_rateLimitSpacesRequests():
    crates = {name: crateBody(name, "1.0.0") for name in ("a", "b", "c")}
    out = Collector()

    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(registryHandler(crates))) as client:
        started = time.monotonic()
        await client.resolveVersions(["a", "b", "c"], out, rateLimitMs=200)
        elapsed = time.monotonic() - started

    assert elapsed >= 0.4
    assert len(out.events) == 4


# ----------------------------
# resolveCommits
# ----------------------------

def githubHandler(commits: dict[str, list]):
    def handler(req: httpx.Request) -> httpx.Response:
        # /repos/{owner}/{repo}/commits
        _, _repos, owner, repo, _commits = req.url.path.split("/")
        key = f"{owner}/{repo}"
        if key not in commits:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json=commits[key])
    return handler


@pytest.mark.asyncio
async def test_resolveCommits_successAndFailures():
    commits = {"o/alpha": [{"sha": "abc123"}], "o/empty": []}
    out = Collector()

    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(githubHandler(commits))) as client:
        await client.resolveCommits(
            {
                "alpha": "https://github.com/o/alpha",
                "bad": "not-a-url",
                "empty": "https://github.com/o/empty.git",
                "gone": "https://github.com/o/gone",
            },
            out,
        )

    assert out.events[0] == CommitLookupSucceeded(name="alpha", commit="abc123")
    assert [type(event) for event in out.events[1:]] == [CommitLookupFailed] * 3
    assert [event.name for event in out.events] == ["alpha", "bad", "empty", "gone"]


@pytest.mark.asyncio
async def test_resolveCommits_unexpectedErrorOnFirstRepoStillReportsSecond():
    inner = githubHandler({"o/beta": [{"sha": "def456"}]})

    def handler(req: httpx.Request) -> httpx.Response:
        if "/o/alpha/" in req.url.path:
            raise RuntimeError("socket melted")
        return inner(req)

    out = Collector()
    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(handler)) as client:
        await client.resolveCommits({"alpha": "https://github.com/o/alpha", "beta": "https://github.com/o/beta"}, out)

    assert out.events == [
        CommitLookupFailed(name="alpha", reason="RuntimeError: socket melted"),
        CommitLookupSucceeded(name="beta", commit="def456"),
    ]


@pytest.mark.asyncio
async def test_fetchLatestCommit_sendsUserAgentAndPaging():
    seen: list[httpx.Request] = []

    def handler(req: httpx.Request) -> httpx.Response:
        seen.append(req)
        return httpx.Response(200, json=[{"sha": "deadbeef"}])

    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(handler)) as client:
        sha = await client.fetchLatestCommit("o", "alpha")

    assert sha == "deadbeef"
    assert seen[0].url.path == "/repos/o/alpha/commits"
    assert seen[0].url.params["per_page"] == "1"
    assert seen[0].headers["User-Agent"].startswith("crane/")


@pytest.mark.asyncio
async def test_fetchLatestCommit_nonListIsMalformed():
    async with RegistryClient(SETTINGS, transport=httpx.MockTransport(lambda req: httpx.Response(200, json={"sha": "x"}))) as client:
        with pytest.raises(MalformedResponseError):
            await client.fetchLatestCommit("o", "alpha")
