import logging
import os
import pathlib

import pytest
from click.testing import CliRunner

from relshim import shim


def pytest_collection_modifyitems(session, config, items):
    module = pathlib.Path(os.path.dirname(__file__))
    for item in items:
        if module == item.path.parent:
            item.add_marker(pytest.mark.integration_test)


@pytest.fixture(autouse=True)
def restore_logger():
    """The command configures the package logger, undo that for other tests"""
    logger = logging.getLogger("relshim")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture(scope="function")
def runner():
    return CliRunner()


@pytest.fixture
def executions(monkeypatch):
    """Record executed binaries instead of running them."""
    calls = []
    exit_code = {"value": 0}

    def mock_exec(path, args, cancel):
        calls.append((path, list(args)))
        return exit_code["value"]

    monkeypatch.setattr(shim.process, "exec_binary", mock_exec)
    return calls, exit_code
