import logging
import shutil
import typing as t

from relshim import process
from relshim.cancel import CancelToken
from relshim.errors import AttestationFailedError

logger = logging.getLogger(__name__)


class AttestationGate(t.Protocol):
    def verify(self, path: str, repository: str, cancel: CancelToken) -> None:
        """Check the provenance of `path`.

        :raises AttestationFailedError: if the artifact could not be verified.
        """
        ...


class GhAttestationVerifier:
    """Verifies artifacts with `gh attestation verify`.

    The command only receives the token in its environment.
    """

    def __init__(self, token: t.Optional[str], executable: str = "gh") -> None:
        self.token = token
        self.executable = executable

    def environment(self) -> t.Dict[str, str]:
        return {"GH_TOKEN": self.token or ""}

    def verify(self, path: str, repository: str, cancel: CancelToken) -> None:
        # Resolved here since the isolated environment has no PATH.
        gh = shutil.which(self.executable)
        if not gh:
            raise AttestationFailedError(path, f"'{self.executable}' not found in PATH")

        try:
            result = process.run(
                [gh, "attestation", "verify", "--repo", repository, path],
                cancel,
                env=self.environment(),
            )
        except OSError as e:
            raise AttestationFailedError(path, str(e)) from e

        if result.returncode != 0:
            raise AttestationFailedError(path, result.stderr)

        if result.stdout.strip():
            logger.info(result.stdout.rstrip())
