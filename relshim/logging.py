import logging
import os
import sys
import traceback
import typing as t
from logging import LogRecord

import click
from tqdm import tqdm

logger = logging.getLogger(__name__)

PREFIX = "[relshim] "

T = t.TypeVar("T")

if t.TYPE_CHECKING:
    # Use type hints from `tqdm.__init__`...
    class ProgressBar(tqdm[T]):
        """Simple wrapper for `tqdm` to only enable for INFO or DEBUG logs"""

        pass

else:
    # ...but call a wrapper function at runtime
    def ProgressBar(*args, disable=None, **kwargs):
        # disable if logging isn't at least INFO
        kwargs["disable"] = kwargs.get(
            "disable", not logger.isEnabledFor(logging.INFO) or None
        )
        # always leave if DEBUG logging
        kwargs["leave"] = logger.isEnabledFor(logging.DEBUG) or kwargs.get(
            "leave", None
        )
        return tqdm(*args, **kwargs)


LOGLEVEL_STYLE = {
    logging.CRITICAL: {"fg": "red", "bold": True},
    logging.ERROR: {"fg": "red"},
    logging.WARNING: {"fg": "yellow"},
    logging.INFO: {},
    logging.DEBUG: {"fg": "blue", "italic": True},
}

# https://docs.github.com/en/actions/using-workflows/workflow-commands-for-github-actions
WORKFLOW_COMMANDS = {
    logging.CRITICAL: "error",
    logging.ERROR: "error",
    logging.WARNING: "warning",
    logging.DEBUG: "debug",
}


def in_github_actions():
    return os.environ.get("GITHUB_ACTIONS", "").lower() == "true"


def escape_workflow_data(data: str):
    return data.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class ClickFormatter(logging.Formatter):
    def formatMessage(self, record: LogRecord) -> str:
        style: t.Dict[str, t.Any] = LOGLEVEL_STYLE.get(record.levelno, {})
        # log all level names regardless in debug mode
        if not style and logger.isEnabledFor(logging.DEBUG):
            style = {"italic": True}

        msg = record.getMessage()
        if style:
            prefix = PREFIX + click.style(record.levelname.lower() + ": ", **style)
        else:
            prefix = PREFIX
        return "\n".join(prefix + line for line in msg.splitlines())

    def formatException(self, ei) -> str:
        e_type, e, ei_tb = ei
        tb = "".join(traceback.format_tb(ei_tb))
        msg = "".join(traceback.format_exception_only(e_type, e))
        if msg[-1:] == "\n":
            msg = msg[:-1]
        return tb + click.style(msg, fg="red")


class WorkflowCommandFormatter(logging.Formatter):
    """Emits warnings and errors as workflow command annotations."""

    def format(self, record: LogRecord) -> str:
        command = WORKFLOW_COMMANDS.get(record.levelno)
        if not command:
            return PREFIX + super().format(record)
        return f"::{command}::" + escape_workflow_data(PREFIX + super().format(record))


class EchoHandler(logging.Handler):
    def emit(self, record: LogRecord) -> None:
        try:
            with tqdm.external_write_mode(sys.stderr):
                msg = self.format(record)
                click.echo(msg, err=True)
        except Exception:
            self.handleError(record)


def make_handler():
    handler = EchoHandler()
    handler.setFormatter(
        WorkflowCommandFormatter() if in_github_actions() else ClickFormatter()
    )
    return handler
