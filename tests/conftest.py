"""Configure pytest fixtures and environment for LeagueMail tests."""

import pytest
from dotenv import load_dotenv
from sample_data import FakeDirectoryService, make_settings, raw_contact

from leaguemail.core.config import reset_settings


def pytest_sessionstart(session):
    """Load environment variables from .env if present."""
    load_dotenv()


@pytest.fixture(autouse=True)
def fresh_settings():
    """Never leak the process-wide settings between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return make_settings(page_size=3)


@pytest.fixture
def directory():
    """Seven players plus one contact without a usable email."""
    records = [raw_contact(i, "Player", f"Number{i}") for i in range(1, 8)]
    records.append(raw_contact(8, "Casey", "Coach", email="casey at league"))
    return FakeDirectoryService(records)
