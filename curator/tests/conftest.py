"""
Pytest configuration for curator tests.
"""
import asyncio

import pytest

from curator.services.content_store import ContentStore
from curator.services.curation_writer import CurationWriter
from curator.services.index_builder import IndexBuilder
from curator.tests.fakes import FakeIpfs, FakeLedger

# Configure pytest-asyncio to auto mode
pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


@pytest.fixture
def ipfs():
    return FakeIpfs()


@pytest.fixture
def store(ipfs):
    return ContentStore(ipfs, curated_dir="/dBranch/curated", published_dir="/dBranch/published")


@pytest.fixture
def index_builder(store):
    return IndexBuilder(store, "/dBranch/index.json")


@pytest.fixture
async def writer(store, index_builder):
    """CurationWriter with its loop running for the duration of the test."""
    writer = CurationWriter(store, index_builder)
    task = asyncio.create_task(writer.run())
    yield writer
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


@pytest.fixture
def ledger():
    return FakeLedger()
