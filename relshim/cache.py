import logging
import os
import typing as t

from urllib3.exceptions import HTTPError

from relshim import fs
from relshim.attestation import AttestationGate
from relshim.cancel import CancelToken
from relshim.downloading import content_length
from relshim.downloading import download_with_progress
from relshim.downloading import Fetcher
from relshim.errors import AttestationFailedError
from relshim.errors import CacheError
from relshim.errors import ConfigError
from relshim.errors import RemoteUnreachableError
from relshim.platforms import Platform

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "{repo_name}-{os}-{arch}{ext}"


def repo_name(repository: str):
    return repository.rstrip("/").rsplit("/", 1)[-1]


def repo_dirname(repository: str):
    return repository.strip("/").replace("/", "--")


class ArtifactCache:
    """Release artifacts stored on disk, keyed by repository, tag and platform.

    Layout: `<root>/<owner>--<repo>/<tag>/<repo>-<os>-<arch><ext>`.
    A file existing at its path is the only signal of a cache hit; published
    tags are never expected to change.

    :param evict_on_failure: Remove the cached artifact when attestation fails.
    By default it is kept, so a retry does not download it again.
    """

    def __init__(
        self,
        root: str,
        fetcher: Fetcher,
        gate: t.Optional[AttestationGate] = None,
        *,
        server_url: str = "https://github.com/",
        asset_pattern: str = DEFAULT_PATTERN,
        evict_on_failure: bool = False,
    ) -> None:
        self.root = root
        self.fetcher = fetcher
        self.gate = gate
        self.server_url = server_url.rstrip("/") + "/"
        self.asset_pattern = asset_pattern
        self.evict_on_failure = evict_on_failure

    def path_for(self, repository: str, tag: str, platform: Platform):
        return os.path.join(
            self.root,
            repo_dirname(repository),
            tag,
            f"{repo_name(repository)}-{platform.os}-{platform.arch}{platform.ext}",
        )

    def asset_name(self, repository: str, tag: str, platform: Platform):
        try:
            return self.asset_pattern.format_map(
                {
                    "repository": repository,
                    "repo_name": repo_name(repository),
                    "tag": tag,
                    **platform.template_fields(),
                }
            )
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(
                f"invalid asset pattern {self.asset_pattern!r}: {e!r}"
            ) from e

    def get(
        self, repository: str, tag: str, platform: Platform, cancel: CancelToken
    ) -> str:
        """Return the path to the artifact, downloading it if it isn't cached."""
        path = self.path_for(repository, tag, platform)
        if fs.isfile(path):
            logger.debug(f"Using cached artifact '{path}'.")
            return path

        self._download(repository, tag, platform, path, cancel)

        if self.gate:
            try:
                self.gate.verify(path, repository, cancel)
            except AttestationFailedError:
                if self.evict_on_failure:
                    logger.debug(f"Evicting unverified artifact '{path}'.")
                    os.remove(path)
                raise

        return path

    def _download(
        self,
        repository: str,
        tag: str,
        platform: Platform,
        path: str,
        cancel: CancelToken,
    ):
        asset = self.asset_name(repository, tag, platform)
        response = self.fetcher.fetch(self.server_url + repository, tag, asset, cancel)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            size = content_length(response)
            with fs.temporary_file(os.path.dirname(path)) as temp:
                with open(temp, "wb") as file:
                    written = download_with_progress(
                        response, file, cancel, label=asset, size=size
                    )
                if size is not None and written != size:
                    raise RemoteUnreachableError(
                        f"truncated download of {asset!r}: "
                        f"received {written} of {size} bytes"
                    )
                fs.make_executable(temp)
                fs.atomic_replace(temp, path)
        except HTTPError as e:
            raise RemoteUnreachableError(f"failed to download {asset!r}: {e}") from e
        except OSError as e:
            raise CacheError(f"failed to write cache file '{path}': {e}") from e
        finally:
            release = getattr(response, "release_conn", None)
            if release:
                release()

        logger.debug(f"Cached {repository}@{tag} ({asset}) at '{path}'.")
