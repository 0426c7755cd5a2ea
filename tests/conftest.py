"""Shared fixtures for the gridcalc test suite."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _detached_event_sink():
    """Each test starts and ends with no event sink attached."""
    from gridcalc.logging.events import set_project_dir

    set_project_dir(None)
    yield
    set_project_dir(None)
