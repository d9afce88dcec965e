"""Shared fixtures for the synvm test suite."""

import pytest

from synvm import VirtualMachine, ScriptedTerminal


@pytest.fixture
def make_vm():
    """Build a machine over a word list with scripted console input."""
    def _make(program, lines=(), **kwargs):
        return VirtualMachine(program, ScriptedTerminal(lines), **kwargs)
    return _make
