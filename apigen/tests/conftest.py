"""Unit tests configuration file."""

import os

import pytest

from apigen.generator import compile_schema

TESTS_DIR = os.path.dirname(os.path.realpath(__file__))


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def magma_schema():
    """Text of the shared magma example schema."""
    with open(os.path.join(TESTS_DIR, "generator", "magma.api"), encoding="utf-8") as f:
        return f.read()


@pytest.fixture
def compiled_magma(magma_schema):
    return compile_schema(magma_schema)
