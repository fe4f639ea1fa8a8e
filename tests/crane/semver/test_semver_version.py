# tests/crane/semver/test_semver_version.py
import pytest

from crane.semver import Version, isNewer, parseVersion, tryParseVersion


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.2.3",               (1, 2, 3, (), ())),
        ("0.0.1",               (0, 0, 1, (), ())),
        ("v1.2.3",              (1, 2, 3, (), ())),
        (" 2.0.0 ",             (2, 0, 0, (), ())),
        ("1.2.3-alpha",         (1, 2, 3, ("alpha",), ())),
        ("1.2.3-alpha.1",       (1, 2, 3, ("alpha", "1"), ())),
        ("1.2.3+build.1",       (1, 2, 3, (), ("build", "1"))),
        ("1.2.3-rc.1+build.5",  (1, 2, 3, ("rc", "1"), ("build", "5"))),
    ],
)
def test_parseVersion_valid(raw, expected):
    v = parseVersion(raw)
    assert (v.major, v.minor, v.patch, v.prerelease, v.build) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        "1",
        "1.2",
        "1.2.3.4",
        "01.2.3",
        "1.02.3",
        "1.2.3-",
        "1.2.3+",
        "v",
        "vv1.2.3",
        "latest",
    ],
)
def test_parseVersion_invalid(raw):
    with pytest.raises(ValueError):
        parseVersion(raw)


def test_parseVersion_rejectsNonString():
    with pytest.raises(TypeError):
        parseVersion(123)  # type: ignore[arg-type]


def test_version_strRoundTrip():
    assert str(parseVersion("1.2.3-rc.1+build.5")) == "1.2.3-rc.1+build.5"
    assert str(parseVersion("v0.10.0")) == "0.10.0"


@pytest.mark.parametrize(
    "lower, higher",
    [
        ("1.0.0", "1.0.1"),
        ("1.0.9", "1.1.0"),
        ("1.9.9", "2.0.0"),
        ("0.9.0", "0.10.0"),
        ("1.0.0-alpha", "1.0.0"),
        ("1.0.0-alpha", "1.0.0-alpha.1"),
        ("1.0.0-alpha.1", "1.0.0-alpha.beta"),
        ("1.0.0-alpha.2", "1.0.0-alpha.10"),
        ("1.0.0-beta", "1.0.0-rc.1"),
    ],
)
def test_version_ordering(lower, higher):
    assert parseVersion(lower) < parseVersion(higher)
    assert parseVersion(higher) > parseVersion(lower)


def test_version_buildIgnoredForEquality():
    a = parseVersion("1.2.3+linux")
    b = parseVersion("1.2.3+mac")
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1


def test_version_isPrerelease():
    assert parseVersion("1.0.0-rc.1").isPrerelease
    assert not parseVersion("1.0.0").isPrerelease


def test_tryParseVersion():
    assert tryParseVersion("1.2.3") == Version(1, 2, 3)
    assert tryParseVersion("nope") is None
    assert tryParseVersion(None) is None


def test_isNewer():
    current = parseVersion("1.0.0")
    assert isNewer(parseVersion("2.0.0"), current)
    assert not isNewer(parseVersion("1.0.0"), current)
    assert not isNewer(parseVersion("0.9.0"), current)
    assert not isNewer(None, current)
