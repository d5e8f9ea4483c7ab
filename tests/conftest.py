"""Pytest configuration - ensure consistent CWD and provide fixtures.

The CLI's --fields option resolves paths relative to the current working
directory, so every session runs from the project root.
"""
from __future__ import annotations

import os
from pathlib import Path
import pytest

from eqforge.fields import DictFieldStore
from eqforge.seeds import make_rng

ROOT = Path(__file__).resolve().parents[1]

def pytest_sessionstart(session):
    os.chdir(ROOT)


# Fixtures used by multiple test files

@pytest.fixture
def store():
    """Fresh in-memory field store holding host defaults."""
    return DictFieldStore()


@pytest.fixture
def rng():
    """Deterministic generator for the canonical test seed."""
    return make_rng("t1")
