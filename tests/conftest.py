import pytest

from fakes import FakeDB, MemoryStore, MockSettingsRow, RecordingTransport, build_workflow


@pytest.fixture
def store():
    """Fresh in-memory tables for each test, with both addresses configured."""
    s = MemoryStore()
    s.settings = MockSettingsRow(
        report_email="reports@example.com",
        rejection_email="qa-lead@example.com",
    )
    return s


@pytest.fixture
def mock_db(store):
    """AsyncSession stand-in bound to the test's store."""
    return FakeDB(store)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def wf(store, transport):
    """All workflow components wired against mock repositories."""
    return build_workflow(store, transport)
