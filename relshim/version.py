import operator
import re
import typing as t
from dataclasses import dataclass
from dataclasses import field

from relshim.errors import NotSemverError

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
_SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$",
    re.ASCII,
)


@dataclass(frozen=True, eq=False)
class Version:
    Major: int
    Minor: int
    Patch: int
    Prerelease: t.Tuple[t.Union[int, str], ...] = field(default_factory=tuple)
    Build: t.Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, version: str) -> "Version":
        """Parse a semantic version, with or without a leading 'v'.

        :raises NotSemverError: if the remainder is not a valid semantic version.
        """
        match = _SEMVER_PATTERN.fullmatch(
            version[1:] if version[:1] == "v" else version
        )
        if not match:
            raise NotSemverError(version)

        major, minor, patch, pre, build = match.groups()
        prerelease = tuple(
            int(ident) if ident.isdigit() else ident
            for ident in (pre.split(".") if pre else ())
        )
        return cls(
            int(major),
            int(minor),
            int(patch),
            prerelease,
            tuple(build.split(".")) if build else (),
        )

    @classmethod
    def is_valid(cls, version: str):
        try:
            cls.parse(version)
            return True
        except NotSemverError:
            return False

    @property
    def is_prerelease(self):
        return bool(self.Prerelease)

    @property
    def tag(self):
        """The canonical tag name for this version, always prefixed with 'v'."""
        return "v" + str(self)

    def _prerelease_key(self):
        # A release outranks any prerelease of the same core version.
        if not self.Prerelease:
            return (1,)
        # Numeric identifiers have lower precedence than alphanumeric ones.
        return (
            0,
            tuple(
                (0, ident, "") if isinstance(ident, int) else (1, 0, ident)
                for ident in self.Prerelease
            ),
        )

    def _key(self):
        return (self.Major, self.Minor, self.Patch, self._prerelease_key())

    def __str__(self):
        out = "{}.{}.{}".format(self.Major, self.Minor, self.Patch)
        if self.Prerelease:
            out += "-" + ".".join(map(str, self.Prerelease))
        if self.Build:
            out += "+" + ".".join(self.Build)
        return out

    def __repr__(self):
        return f"Version({str(self)!r})"

    def __eq__(self, other: object):
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __lt__(self, other: "Version"):
        return self._key() < other._key()

    def __le__(self, other: "Version"):
        return self._key() <= other._key()

    def __gt__(self, other: "Version"):
        return self._key() > other._key()

    def __ge__(self, other: "Version"):
        return self._key() >= other._key()


def parse(version: str) -> Version:
    return Version.parse(version)


def render(version: Version) -> str:
    return version.tag


def compare(a: Version, b: Version) -> int:
    """Compare two versions by semantic version precedence.

    Build metadata is ignored.

    :returns: -1, 0 or 1.
    """
    return (a > b) - (a < b)


_OPERATORS: t.Dict[str, t.Callable[[Version, Version], bool]] = {
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

_COMPARATOR_PATTERN = re.compile(r"^\s*(==|!=|>=|<=|=|>|<)?\s*(\S+)\s*$")


@dataclass(frozen=True)
class Criteria:
    """Selects versions from a list of candidates.

    `constraint` is `*` (any version) or a comma-separated list of comparators,
    e.g. `>=1.2.0, <2.0.0`. Prereleases are only selected if `prerelease` is set.
    """

    constraint: str = "*"
    prerelease: bool = False

    def comparators(self):
        if self.constraint.strip() in ("", "*"):
            return []

        result = []
        for part in self.constraint.split(","):
            match = _COMPARATOR_PATTERN.match(part)
            if not match:
                raise NotSemverError(part)
            op, version = match.groups()
            result.append((_OPERATORS[op or "="], Version.parse(version)))
        return result

    def matches(self, version: Version):
        if version.is_prerelease and not self.prerelease:
            return False
        return all(op(version, bound) for op, bound in self.comparators())
