"""Shared fixtures: a fresh SQLite file per test, wired store -> repository -> aggregator."""
import asyncio

import pytest
import pytest_asyncio

from puzzlemaster.aggregator import PuzzleAggregator
from puzzlemaster.db import make_engine
from puzzlemaster.repository import PuzzleRepository
from puzzlemaster.store import PuzzleStore


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'puzzles.db'}")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(engine):
    store = PuzzleStore(engine)
    await store.create_tables()
    return store


@pytest.fixture
def repository(store):
    return PuzzleRepository(store)


@pytest_asyncio.fixture
async def aggregator(repository):
    aggregator = PuzzleAggregator(repository, grace_period=0.05)
    yield aggregator
    await aggregator.aclose()


@pytest.fixture
def until():
    """Read states from a subscription until one satisfies the predicate."""

    async def _until(states, predicate, timeout=2.0):
        async def scan():
            async for state in states:
                if predicate(state):
                    return state

        return await asyncio.wait_for(scan(), timeout)

    return _until
