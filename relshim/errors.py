import typing as t

import click


class ShimError(click.ClickException):
    """Base for every failure the shim reports to the user.

    All subclasses exit with status 1.
    """


class NotSemverError(ShimError, ValueError):
    def __init__(self, version: str) -> None:
        super().__init__(f"{version!r} is not a valid semantic version.")
        self.version = version


class RemoteUnreachableError(ShimError):
    pass


class NoLatestError(ShimError):
    pass


class NoTagForCommitError(ShimError):
    def __init__(self, commit: str) -> None:
        super().__init__(f"failed to find tag for {commit!r}")
        self.commit = commit


class AssetNotFoundError(ShimError):
    pass


class AttestationFailedError(ShimError):
    def __init__(self, path: str, detail: t.Optional[str] = None) -> None:
        msg = f"attestation validation failed for '{path}'"
        if detail:
            msg += f": {detail.strip()}"
        else:
            msg += " (no stderr)"
        super().__init__(msg)
        self.path = path
        self.detail = detail


class ConfigError(ShimError):
    pass


class CacheError(ShimError):
    pass


class InternalError(ShimError):
    """An unexpected fault, reported with its traceback."""


class ExceptionCount(Exception):
    def __init__(self, count: int):
        self.count = count
        super().__init__()
