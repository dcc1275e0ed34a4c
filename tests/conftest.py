import io
import typing as t

import pytest
from urllib3.exceptions import ProtocolError

from relshim.cancel import CancelToken
from relshim.config import ACTION_INPUTS
from relshim.config import ENV_VARS
from relshim.errors import RemoteUnreachableError
from relshim.refs import RemoteRef


class FakeRefIndex:
    """Serves a fixed ref listing and records each request."""

    def __init__(self, refs: t.Sequence[t.Tuple[str, str]] = ()):
        self.refs = [RemoteRef(*ref) for ref in refs]
        self.calls: t.List[str] = []

    def list(self, repository_url: str, cancel: CancelToken):
        self.calls.append(repository_url)
        return list(self.refs)


class UnreachableRefIndex(FakeRefIndex):
    def list(self, repository_url: str, cancel: CancelToken):
        self.calls.append(repository_url)
        raise RemoteUnreachableError(f"failed to list remotes for {repository_url}")


class FakeResponse(io.BytesIO):
    def __init__(self, data: bytes, length: t.Optional[int] = None, fail_after=None):
        super().__init__(data)
        self.headers = {"Content-Length": str(len(data) if length is None else length)}
        self.fail_after = fail_after

    def read(self, amt=-1):
        if self.fail_after is not None:
            remaining = self.fail_after - self.tell()
            if remaining <= 0:
                raise ProtocolError("Connection broken", ConnectionResetError())
            amt = remaining if amt is None or amt < 0 else min(amt, remaining)
        return super().read(amt)


class FakeFetcher:
    """Returns a response for every fetch and records the requested assets."""

    def __init__(self, data=b"#!/bin/sh\necho hello\n", **response_kwargs):
        self.data = data
        self.response_kwargs = response_kwargs
        self.calls: t.List[t.Tuple[str, str, str]] = []

    def fetch(self, repository_url: str, tag: str, asset_name: str, cancel):
        self.calls.append((repository_url, tag, asset_name))
        return FakeResponse(self.data, **self.response_kwargs)


class FakeGate:
    def __init__(self, error: t.Optional[Exception] = None):
        self.error = error
        self.calls: t.List[t.Tuple[str, str]] = []

    def verify(self, path: str, repository: str, cancel):
        self.calls.append((path, repository))
        if self.error:
            raise self.error


@pytest.fixture
def cancel():
    return CancelToken()


@pytest.fixture
def ref_index():
    return FakeRefIndex


@pytest.fixture
def unreachable_index():
    return UnreachableRefIndex()


@pytest.fixture
def fetcher():
    return FakeFetcher


@pytest.fixture
def gate():
    return FakeGate


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Make sure configuration from the running environment doesn't leak into tests"""
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)
    for key in ACTION_INPUTS.values():
        monkeypatch.delenv("INPUT_" + key.upper(), raising=False)
    for var in ("GITHUB_ACTIONS", "RELSHIM_DEBUG", "RUNNER_DEBUG"):
        monkeypatch.delenv(var, raising=False)
    action_path = tmp_path / "action"
    action_path.mkdir()
    monkeypatch.setenv("GITHUB_ACTION_PATH", str(action_path))
    return action_path
