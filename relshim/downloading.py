import importlib.metadata
import logging
import typing as t
import urllib.parse

import urllib3
from urllib3.exceptions import HTTPError

from relshim.cancel import CancelToken
from relshim.errors import AssetNotFoundError
from relshim.errors import RemoteUnreachableError
from relshim.logging import ProgressBar

if t.TYPE_CHECKING:
    import _typeshed as _ts


logger = logging.getLogger(__name__)

try:
    _version = importlib.metadata.version("relshim")
except importlib.metadata.PackageNotFoundError:
    _version = "dev"

_global_headers = {
    "User-Agent": f"relshim/{_version}",
}

BLOCKSIZE = 8192


class URLResponse(t.Protocol):
    headers: t.Mapping[str, str]

    def read(self, amt: t.Optional[int] = ...) -> bytes:
        ...


def open_url(
    url: str,
    *,
    method="GET",
    headers: t.Optional[t.Mapping[str, str]] = None,
    pool_manager: t.Optional[urllib3.PoolManager] = None,
):
    """Send a request to a URL and return the unread response.

    Redirects are followed, nothing else is retried.
    """
    http = pool_manager or urllib3.PoolManager()
    return http.request(
        method,
        url,
        headers={**_global_headers, **(headers or {})},
        preload_content=False,
        redirect=True,
        retries=urllib3.Retry(
            total=None, connect=0, read=0, status=0, other=0, redirect=10
        ),
        timeout=urllib3.Timeout(connect=10, read=30),
    )


def content_length(response: URLResponse) -> t.Optional[int]:
    value = response.headers.get("Content-Length", None)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def download_with_progress(
    response: URLResponse,
    output: "_ts.SupportsWrite[bytes]",
    cancel: CancelToken,
    label: t.Optional[str] = None,
    size: t.Optional[int] = None,
    blocksize=BLOCKSIZE,
) -> int:
    """Copy `response` into `output` in blocks, checking for cancellation.

    :returns: The number of bytes written.
    """
    written = 0
    with ProgressBar(
        total=size,
        desc=label,
        leave=False,
        unit_scale=True,
        unit="b",
        delay=0.4,
    ) as bar:
        while True:
            cancel.check()
            buf = response.read(blocksize)
            if not buf:
                break
            output.write(buf)
            written += len(buf)
            bar.update(len(buf))
    return written


class Fetcher(t.Protocol):
    def fetch(
        self, repository_url: str, tag: str, asset_name: str, cancel: CancelToken
    ) -> URLResponse:
        ...


class ReleaseFetcher:
    """Fetches assets attached to tagged releases.

    Assets are downloaded from `<repository_url>/releases/download/<tag>/<asset>`.
    """

    def __init__(
        self,
        token: t.Optional[str] = None,
        pool_manager: t.Optional[urllib3.PoolManager] = None,
    ) -> None:
        self.token = token
        self.pool_manager = pool_manager or urllib3.PoolManager()

    def asset_url(self, repository_url: str, tag: str, asset_name: str):
        return "/".join(
            (
                repository_url.rstrip("/"),
                "releases",
                "download",
                urllib.parse.quote(tag, safe=""),
                urllib.parse.quote(asset_name, safe=""),
            )
        )

    def fetch(
        self, repository_url: str, tag: str, asset_name: str, cancel: CancelToken
    ) -> URLResponse:
        cancel.check()
        url = self.asset_url(repository_url, tag, asset_name)
        headers = {"Accept": "application/octet-stream"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        logger.debug(f"Fetching {url}")
        try:
            response = open_url(url, headers=headers, pool_manager=self.pool_manager)
        except HTTPError as e:
            raise RemoteUnreachableError(f"failed to fetch {url}: {e}") from e

        if response.status == 404:
            response.release_conn()
            raise AssetNotFoundError(
                f"release {tag!r} of {repository_url} has no asset {asset_name!r}"
            )
        if response.status >= 400:
            response.release_conn()
            raise RemoteUnreachableError(
                f"failed to fetch {url}: HTTP {response.status} {response.reason}"
            )
        return response
