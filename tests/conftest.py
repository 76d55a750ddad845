"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from nyaa_pages import RecordingSleep


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()
