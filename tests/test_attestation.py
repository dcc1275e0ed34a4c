import pytest

from relshim import attestation
from relshim import process
from relshim.attestation import GhAttestationVerifier
from relshim.errors import AttestationFailedError


@pytest.fixture
def gh(monkeypatch):
    """Pretend `gh` is installed, and record how it is invoked."""
    calls = []
    result = {"returncode": 0, "stdout": "", "stderr": ""}

    def mock_run(args, cancel, *, env=None):
        calls.append((args, env))
        return process.CompletedProcess(args, **result)

    monkeypatch.setattr(attestation.shutil, "which", lambda name: "/usr/bin/" + name)
    monkeypatch.setattr(attestation.process, "run", mock_run)
    return calls, result


def test_verify(gh, cancel, caplog):
    caplog.set_level("INFO")
    calls, result = gh
    result["stdout"] = "Verification succeeded!\n"

    GhAttestationVerifier("secret").verify(
        "/cache/repo-linux-amd64", "owner/repo", cancel
    )
    assert calls == [
        (
            [
                "/usr/bin/gh",
                "attestation",
                "verify",
                "--repo",
                "owner/repo",
                "/cache/repo-linux-amd64",
            ],
            {"GH_TOKEN": "secret"},
        )
    ]
    assert "Verification succeeded!" in caplog.text


def test_verify_isolated_environment(gh, cancel, monkeypatch):
    monkeypatch.setenv("SOME_SECRET", "do-not-leak")
    calls, _ = gh
    GhAttestationVerifier(None).verify("/path", "owner/repo", cancel)
    _, env = calls[0]
    assert env == {"GH_TOKEN": ""}


def test_verify_failure(gh, cancel):
    _, result = gh
    result["returncode"] = 1
    result["stderr"] = "no attestations found\n"
    with pytest.raises(AttestationFailedError, match="no attestations") as exc_info:
        GhAttestationVerifier("secret").verify("/path", "owner/repo", cancel)
    assert exc_info.value.detail == "no attestations found\n"


def test_verify_failure_no_stderr(gh, cancel):
    _, result = gh
    result["returncode"] = 1
    with pytest.raises(AttestationFailedError, match="no stderr"):
        GhAttestationVerifier("secret").verify("/path", "owner/repo", cancel)


def test_verify_missing_gh(monkeypatch, cancel):
    monkeypatch.setattr(attestation.shutil, "which", lambda name: None)
    with pytest.raises(AttestationFailedError, match="not found"):
        GhAttestationVerifier("secret").verify("/path", "owner/repo", cancel)
