import operator as op

import pytest

from relshim.errors import NotSemverError
from relshim.version import compare
from relshim.version import Criteria
from relshim.version import parse
from relshim.version import render
from relshim.version import Version


@pytest.mark.parametrize(
    ("version", "expect"),
    [
        pytest.param("1.2.3", Version(1, 2, 3), id='"1.2.3" = 1.2.3'),
        pytest.param("v1.2.3", Version(1, 2, 3), id='"v1.2.3" = 1.2.3'),
        pytest.param(
            "1.2.3-rc.1", Version(1, 2, 3, ("rc", 1)), id='"1.2.3-rc.1" = 1.2.3-rc.1'
        ),
        pytest.param(
            "v0.1.0+build.5",
            Version(0, 1, 0, (), ("build", "5")),
            id='"v0.1.0+build.5" = 0.1.0+build.5',
        ),
    ],
)
def test_version_parse(version, expect):
    parsed = Version.parse(version)
    assert parsed == expect
    assert parsed.Build == expect.Build


@pytest.mark.parametrize(
    "version",
    [
        "",
        "v",
        "main",
        "latest",
        "1.2",
        "1.2.3.4",
        "01.2.3",
        "1.2.3-",
        "1.2.3-01",
        "vv1.2.3",
        "V1.2.3",
        "deadbeef",
    ],
)
def test_version_parse_invalid(version):
    with pytest.raises(NotSemverError):
        Version.parse(version)
    assert not Version.is_valid(version)


def test_not_semver_is_value_error():
    with pytest.raises(ValueError):
        parse("not-a-version")


@pytest.mark.parametrize(
    "version",
    ["1.2.3", "v1.2.3", "0.0.1-alpha.1", "v10.20.30-rc.1+build.123", "2.0.0+meta"],
)
def test_render(version):
    tag = render(parse(version))
    assert tag.startswith("v") and not tag.startswith("vv")
    assert render(parse(tag)) == tag
    assert tag.lstrip("v") == version.lstrip("v")


@pytest.mark.parametrize(
    ("left", "right", "comparison"),
    [
        ("1.2.3", "1.2.3", op.eq),
        ("1.2.3+a", "1.2.3+b", op.eq),
        ("1.2.3", "1.2.4", op.lt),
        ("1.10.0", "1.9.0", op.gt),
        ("2.0.0", "1.99.99", op.gt),
        ("1.0.0-rc.1", "1.0.0", op.lt),
        ("1.0.0-alpha", "1.0.0-alpha.1", op.lt),
        ("1.0.0-alpha.1", "1.0.0-alpha.beta", op.lt),
        ("1.0.0-alpha.beta", "1.0.0-beta", op.lt),
        ("1.0.0-beta.2", "1.0.0-beta.11", op.lt),
        ("1.0.0-beta.11", "1.0.0-rc.1", op.lt),
    ],
)
def test_version_compare(left, right, comparison):
    assert comparison(parse(left), parse(right))


def test_semver_precedence_order():
    # https://semver.org/#spec-item-11
    ordered = [
        "1.0.0-alpha",
        "1.0.0-alpha.1",
        "1.0.0-alpha.beta",
        "1.0.0-beta",
        "1.0.0-beta.2",
        "1.0.0-beta.11",
        "1.0.0-rc.1",
        "1.0.0",
    ]
    assert sorted(map(parse, reversed(ordered))) == list(map(parse, ordered))


@pytest.mark.parametrize(
    ("left", "right", "expect"),
    [("1.0.0", "1.0.0+x", 0), ("1.0.0", "1.0.1", -1), ("1.0.0", "1.0.0-rc.1", 1)],
)
def test_compare(left, right, expect):
    assert compare(parse(left), parse(right)) == expect


@pytest.mark.parametrize(
    ("criteria", "version", "expect"),
    [
        (Criteria(), "1.2.3", True),
        (Criteria(), "1.2.3-rc.1", False),
        (Criteria(prerelease=True), "1.2.3-rc.1", True),
        (Criteria(">=1.0.0, <2.0.0"), "1.5.0", True),
        (Criteria(">=1.0.0, <2.0.0"), "2.0.0", False),
        (Criteria("1.2.3"), "1.2.3", True),
        (Criteria("!=1.2.3"), "1.2.3", False),
    ],
)
def test_criteria_matches(criteria, version, expect):
    assert criteria.matches(parse(version)) is expect


def test_criteria_invalid():
    with pytest.raises(NotSemverError):
        Criteria(">=banana").matches(parse("1.0.0"))
