import logging
import os
import sys
import typing as t

import click

from relshim import process
from relshim.attestation import GhAttestationVerifier
from relshim.cache import ArtifactCache
from relshim.cancel import CancelToken
from relshim.cancel import signal_context
from relshim.config import Config
from relshim.config import load_config
from relshim.downloading import ReleaseFetcher
from relshim.errors import InternalError
from relshim.errors import ShimError
from relshim.logging import EchoHandler
from relshim.logging import make_handler
from relshim.platforms import Platform
from relshim.refs import GitRemoteRefIndex
from relshim.resolver import RefResolver


# This should be the root module logger, even though __name__ is 'relshim.shim'
logger = logging.getLogger("relshim")


def _debug_env():
    return os.getenv("RELSHIM_DEBUG", "").lower() in ("true", "yes", "1") or (
        os.getenv("RUNNER_DEBUG", "") == "1"
    )


def setup_logging():
    # Replace the handler from a previous invocation in the same process
    for handler in list(logger.handlers):
        if isinstance(handler, EchoHandler):
            logger.removeHandler(handler)
    logger.addHandler(make_handler())
    # Required to avoid duplicate logging from subprocesses, among other things
    logger.propagate = False
    logger.setLevel(logging.DEBUG if _debug_env() else logging.INFO)


class CatchErrorsCommand(click.Command):
    """Reports every failure through the logger and exits with status 1.

    Signals cancel the `CancelToken` passed to the command as `ctx.obj`.
    A successful run exits with the status returned by the command.
    """

    def main(self, args=None, prog_name=None, complete_var=None, **extra):
        setup_logging()
        extra.pop("standalone_mode", None)
        try:
            with signal_context() as cancel:
                extra["obj"] = cancel
                rv = super().main(
                    args, prog_name, complete_var, standalone_mode=False, **extra
                )
        except click.Abort:
            logger.error("Interrupted, aborting.")
            sys.exit(1)
        except click.UsageError as e:
            e.show()
            sys.exit(e.exit_code)
        except click.ClickException as e:
            logger.error(e.format_message())
            sys.exit(e.exit_code)
        except Exception as e:
            error = InternalError(f"An unhandled exception has occurred: {e!r}")
            logger.exception(error.format_message())
            sys.exit(error.exit_code)
        sys.exit(rv if isinstance(rv, int) else 0)


def _set_level(level: int):
    def callback(ctx: click.Context, param: click.Parameter, value: bool):
        if value:
            logger.setLevel(level)

    return callback


def make_resolver(config: Config) -> RefResolver:
    assert config.server_url
    return RefResolver(config.server_url, GitRemoteRefIndex())


def make_cache(config: Config) -> ArtifactCache:
    assert config.cache_directory and config.server_url and config.pattern
    gate = (
        GhAttestationVerifier(config.github_token)
        if config.validate_attestations
        else None
    )
    return ArtifactCache(
        config.cache_directory,
        ReleaseFetcher(config.github_token),
        gate,
        server_url=config.server_url,
        asset_pattern=config.pattern,
        evict_on_failure=bool(config.evict_on_attestation_failure),
    )


def run(config: Config, args: t.Sequence[str], cancel: CancelToken) -> int:
    """Resolve, download and execute the configured release.

    :returns: The exit code of the executed binary.
    """
    assert config.action_repository and config.action_ref
    repository, ref = config.action_repository, config.action_ref

    try:
        tag = make_resolver(config).resolve(repository, ref, cancel)
    except ShimError as e:
        e.message = f"failed to get tag for rev {ref!r}: {e.message}"
        raise
    logger.info(f"Evaluated ref {ref} into tag {tag}")

    logger.info(f"Downloading action from {repository}@{tag}...")
    path = make_cache(config).get(repository, tag, Platform.current(), cancel)

    logger.info(f"Executing action binary {path}")
    try:
        return process.exec_binary(path, args, cancel)
    except OSError as e:
        raise ShimError(f"failed to execute '{path}': {e}") from e


@click.command(
    cls=CatchErrorsCommand,
    context_settings={
        "help_option_names": ["-h", "--help"],
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    },
)
@click.option(
    "--repo",
    "action_repository",
    metavar="OWNER/NAME",
    help="Repository to run a release of.",
)
@click.option(
    "--ref",
    "action_ref",
    metavar="REF",
    help="'latest', a semver tag, a branch or a commit.",
)
@click.option(
    "--cache-dir",
    "cache_directory",
    type=click.Path(file_okay=False),
    help="Directory to store downloaded binaries in.",
)
@click.option("--pattern", help="Name of the release asset to download.")
@click.option(
    "--attestations/--no-attestations",
    "validate_attestations",
    default=None,
    help="Verify downloaded binaries with 'gh attestation verify'.",
)
@click.option(
    "--debug",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_set_level(logging.DEBUG),
    help="Enable debug logging.",
)
@click.option(
    "--quiet",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_set_level(logging.ERROR),
    help="Only log errors.",
)
@click.version_option(package_name="relshim")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
def cli(cancel: CancelToken, args: t.Tuple[str, ...], **options: t.Any):
    """Download a release binary for this platform and execute it.

    ARGS are passed through to the binary.
    """
    config = load_config(Config(**options))
    return run(config, args, cancel)
