"""Pytest configuration and shared fixtures."""

import pytest

from sandbox.filesystem import build_initial_filesystem
from sandbox.session import SandboxVM
from sandbox.shell import CommandInterpreter


@pytest.fixture
def seed_fs():
    """A fresh copy of the seed layout."""
    return build_initial_filesystem()


@pytest.fixture
def interpreter():
    return CommandInterpreter()


@pytest.fixture
def run(interpreter, seed_fs):
    """Run a command from /home/sandbox against the seed layout."""

    def _run(command_line, cwd="/home/sandbox", fs=None):
        return interpreter.execute(command_line, cwd, seed_fs if fs is None else fs)

    return _run


@pytest.fixture
def vm():
    return SandboxVM()


@pytest.fixture
def web_app():
    """The browser terminal app with its shared sandbox reset."""
    from web import app as web_module

    web_module.app.config["TESTING"] = True
    web_module.vm.reset()
    return web_module


@pytest.fixture
def http(web_app):
    return web_app.app.test_client()
