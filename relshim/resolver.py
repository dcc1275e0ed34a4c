import logging
import typing as t

from relshim.cancel import Cancelled
from relshim.cancel import CancelToken
from relshim.errors import NoLatestError
from relshim.errors import NoTagForCommitError
from relshim.errors import NotSemverError
from relshim.errors import ShimError
from relshim.refs import BRANCH_PREFIX
from relshim.refs import RemoteRef
from relshim.refs import RemoteRefIndex
from relshim.refs import TAG_PREFIX
from relshim.version import Criteria
from relshim.version import Version

logger = logging.getLogger(__name__)

LATEST = "latest"


class LatestResolver(t.Protocol):
    def resolve(
        self, repository_url: str, criteria: Criteria, cancel: CancelToken
    ) -> str:
        ...


def _tag_versions(refs: t.Iterable[RemoteRef]) -> t.Iterator[Version]:
    for ref in refs:
        if not ref.is_tag:
            continue
        try:
            yield Version.parse(ref.short_name)
        except NotSemverError:
            logger.debug(f"Ignoring non-semver tag '{ref.short_name}'.")


class TagLatestResolver:
    """Selects the greatest tag on the remote matching the given criteria."""

    def __init__(self, ref_index: RemoteRefIndex) -> None:
        self.ref_index = ref_index

    def resolve(
        self, repository_url: str, criteria: Criteria, cancel: CancelToken
    ) -> str:
        refs = self.ref_index.list(repository_url, cancel)
        candidates = [v for v in _tag_versions(refs) if criteria.matches(v)]
        if not candidates:
            raise NoLatestError(
                f"no tag in {repository_url} matches '{criteria.constraint}'"
            )
        return max(candidates).tag


class RefResolver:
    """Resolves a user supplied ref into a canonical release tag.

    :param server_url: Base URL repositories are hosted under,
    e.g. `https://github.com/`.
    """

    def __init__(
        self,
        server_url: str,
        ref_index: RemoteRefIndex,
        latest_resolver: t.Optional[LatestResolver] = None,
    ) -> None:
        self.server_url = server_url.rstrip("/") + "/"
        self.ref_index = ref_index
        self.latest_resolver = latest_resolver or TagLatestResolver(ref_index)

    def repository_url(self, repository: str):
        return self.server_url + repository.strip("/")

    def resolve(self, repository: str, ref: str, cancel: CancelToken) -> str:
        """Resolve `ref` into a 'v' prefixed semver tag.

        `latest` is delegated to the latest resolver. A ref that is already a
        semver tag is trusted without contacting the remote. Otherwise the ref is
        matched against the remote's tags and branches (falling back to treating
        it as a commit), and the greatest semver tag on that commit is returned.
        When a tag and a branch share a name, the first in listing order wins.
        """
        url = self.repository_url(repository)

        if ref == LATEST:
            try:
                return self.latest_resolver.resolve(url, Criteria("*"), cancel)
            except Cancelled:
                raise
            except NoLatestError as e:
                raise NoLatestError(f"failed to get the latest version: {e.message}")
            except Exception as e:
                msg = e.message if isinstance(e, ShimError) else str(e)
                raise NoLatestError(f"failed to get the latest version: {msg}") from e

        try:
            return Version.parse(ref).tag
        except NotSemverError:
            pass

        refs = self.ref_index.list(url, cancel)

        commit = ref
        for remote in refs:
            if remote.name in (TAG_PREFIX + ref, BRANCH_PREFIX + ref):
                commit = remote.commit
                logger.debug(f"Matched ref '{ref}' to {remote.name} at {commit}.")
                break
        else:
            logger.debug(f"No tag or branch named '{ref}', treating it as a commit.")

        greatest = max(
            _tag_versions(r for r in refs if r.commit == commit), default=None
        )
        if greatest is None:
            raise NoTagForCommitError(commit)
        return greatest.tag
