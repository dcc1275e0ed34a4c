import logging
import typing as t

from relshim import process
from relshim.cancel import CancelToken
from relshim.errors import RemoteUnreachableError

logger = logging.getLogger(__name__)

TAG_PREFIX = "refs/tags/"
BRANCH_PREFIX = "refs/heads/"
_PEELED_SUFFIX = "^{}"


class RemoteRef(t.NamedTuple):
    commit: str
    name: str

    @property
    def is_tag(self):
        return self.name.startswith(TAG_PREFIX)

    @property
    def is_branch(self):
        return self.name.startswith(BRANCH_PREFIX)

    @property
    def short_name(self):
        for prefix in (TAG_PREFIX, BRANCH_PREFIX):
            if self.name.startswith(prefix):
                return self.name[len(prefix) :]
        return self.name


class RemoteRefIndex(t.Protocol):
    def list(self, repository_url: str, cancel: CancelToken) -> t.List[RemoteRef]:
        ...


def parse_ls_remote(output: str) -> t.List[RemoteRef]:
    """Parse the output of `git ls-remote`.

    Annotated tags are listed twice, once for the tag object and once peeled
    (`refs/tags/<name>^{}`) for the commit it points to. The peeled commit
    replaces the tag object, so every tag maps to a commit.
    """
    refs: t.List[RemoteRef] = []
    positions: t.Dict[str, int] = {}
    for line in output.splitlines():
        if not line.strip():
            continue
        try:
            commit, name = line.split(None, 1)
        except ValueError:
            logger.debug(f"Skipping malformed ls-remote line: {line!r}")
            continue
        name = name.strip()

        if name.endswith(_PEELED_SUFFIX):
            name = name[: -len(_PEELED_SUFFIX)]
            if name in positions:
                refs[positions[name]] = RemoteRef(commit, name)
                continue

        positions[name] = len(refs)
        refs.append(RemoteRef(commit, name))
    return refs


class GitRemoteRefIndex:
    """Lists remote refs with `git ls-remote`."""

    def __init__(self, git: str = "git") -> None:
        self.git = git

    def list(self, repository_url: str, cancel: CancelToken) -> t.List[RemoteRef]:
        try:
            result = process.run(
                [self.git, "ls-remote", "--tags", "--heads", repository_url], cancel
            )
        except FileNotFoundError as e:
            raise RemoteUnreachableError(
                f"failed to list remotes for {repository_url}: {self.git} not found"
            ) from e

        if result.returncode != 0:
            raise RemoteUnreachableError(
                f"failed to list remotes for {repository_url}: {result.stderr.strip()}"
            )

        refs = parse_ls_remote(result.stdout)
        logger.debug(f"Listed {len(refs)} refs for {repository_url}.")
        return refs
