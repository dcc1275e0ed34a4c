import logging
import subprocess
import typing as t

from relshim.cancel import CancelToken

logger = logging.getLogger(__name__)

# How often a waiting process checks for cancellation.
POLL_INTERVAL = 0.1


class CompletedProcess(t.NamedTuple):
    args: t.Sequence[str]
    returncode: int
    stdout: str
    stderr: str


def _terminate(proc: "subprocess.Popen[t.Any]", grace: float = 5):
    if proc.poll() is not None:
        return
    logger.debug(f"Terminating process {proc.pid}.")
    proc.terminate()
    try:
        proc.wait(grace)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


def run(
    args: t.Sequence[str],
    cancel: CancelToken,
    *,
    env: t.Optional[t.Mapping[str, str]] = None,
) -> CompletedProcess:
    """Run a command to completion, capturing its output.

    Output is decoded as UTF-8, with undecodable bytes replaced.

    The process is terminated if `cancel` is triggered or waiting is interrupted.

    :raises FileNotFoundError: if the executable does not exist.
    """
    logger.debug(f"Running: {' '.join(args)}")
    with subprocess.Popen(
        args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
        encoding="utf-8",
        errors="replace",
    ) as proc:
        try:
            while True:
                cancel.check()
                try:
                    stdout, stderr = proc.communicate(timeout=POLL_INTERVAL)
                    break
                except subprocess.TimeoutExpired:
                    continue
        except BaseException:
            _terminate(proc)
            raise

    return CompletedProcess(args, proc.returncode, stdout, stderr)


def exec_binary(path: str, args: t.Sequence[str], cancel: CancelToken) -> int:
    """Execute `path` with the current stdio streams and environment.

    :returns: The exit code of the process.
    """
    with subprocess.Popen([path, *args]) as proc:
        try:
            while True:
                cancel.check()
                try:
                    return proc.wait(timeout=POLL_INTERVAL)
                except subprocess.TimeoutExpired:
                    continue
        except BaseException:
            _terminate(proc)
            raise
