"""Durable puzzle table with push-based ("live") queries.

Every committed write bumps a version counter. Live queries wait on that
counter and re-run their SELECT whenever it moves, so subscribers always
receive the full, freshly ordered result set.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from puzzlemaster.db import init_db
from puzzlemaster.errors import StorageError
from puzzlemaster.models import PuzzleRow
from puzzlemaster.schemas import Puzzle

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Integers past the driver's range raise OverflowError outside SQLAlchemy's wrapping
DRIVER_ERRORS = (SQLAlchemyError, OverflowError)

# Solved puzzles, quickest time limit first, then fewest attempts.
# A missing time limit ranks as 0; id breaks the remaining ties.
RANKING_ORDER = (
    func.coalesce(PuzzleRow.time_limit_sec, 0).asc(),
    PuzzleRow.attempts.asc(),
    PuzzleRow.id.asc(),
)


class PuzzleStore:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._write_lock = asyncio.Lock()
        self._changed = asyncio.Condition()
        self._version = 0

    async def create_tables(self):
        await init_db(self.engine)

    # Writes

    async def insert(self, puzzle: Puzzle) -> int:
        """Insert a puzzle, or replace the row that already has its id.

        Returns the id the row is stored under.
        """
        async with self._write_lock:
            try:
                async with self._sessions.begin() as session:
                    if puzzle.is_new:
                        row = PuzzleRow(**puzzle.model_dump(exclude={"id"}))
                        session.add(row)
                    else:
                        row = await session.merge(PuzzleRow(**puzzle.model_dump()))
                    await session.flush()
                    puzzle_id = row.id
            except DRIVER_ERRORS as e:
                logger.error(f"Insert of puzzle {puzzle.title!r} failed: {e}")
                raise StorageError(f"insert failed: {e}") from e
        logger.info(f"Stored puzzle #{puzzle_id}: {puzzle.title}")
        await self._notify()
        return puzzle_id

    async def update(self, puzzle: Puzzle) -> bool:
        """Replace the row matching puzzle.id. Returns False if there was none."""
        values = puzzle.model_dump(exclude={"id"})
        statement = update(PuzzleRow).where(PuzzleRow.id == puzzle.id).values(**values)
        return await self._write_matching("update", puzzle, statement)

    async def delete(self, puzzle: Puzzle) -> bool:
        """Remove the row matching puzzle.id. Returns False if there was none."""
        statement = delete(PuzzleRow).where(PuzzleRow.id == puzzle.id)
        return await self._write_matching("delete", puzzle, statement)

    async def _write_matching(self, action: str, puzzle: Puzzle, statement) -> bool:
        async with self._write_lock:
            try:
                async with self._sessions.begin() as session:
                    result = await session.execute(statement)
                    matched = result.rowcount > 0
            except DRIVER_ERRORS as e:
                logger.error(f"{action.capitalize()} of puzzle #{puzzle.id} failed: {e}")
                raise StorageError(f"{action} failed: {e}") from e

        if not matched:
            # Unknown ids are a silent no-op, nothing to re-query
            logger.info(f"No puzzle #{puzzle.id} to {action}")
            return False

        logger.info(f"Applied {action} to puzzle #{puzzle.id}")
        await self._notify()
        return True

    async def _notify(self):
        async with self._changed:
            self._version += 1
            self._changed.notify_all()

    # One-shot reads

    async def fetch_all(self) -> list[Puzzle]:
        return await self._fetch_list(select(PuzzleRow).order_by(PuzzleRow.id.desc()))

    async def fetch_ranking(self) -> list[Puzzle]:
        return await self._fetch_list(
            select(PuzzleRow).where(PuzzleRow.solved.is_(True)).order_by(*RANKING_ORDER)
        )

    async def fetch_puzzle(self, puzzle_id: int) -> Puzzle | None:
        try:
            async with self._sessions() as session:
                row = await session.get(PuzzleRow, puzzle_id)
                return Puzzle.model_validate(row) if row else None
        except DRIVER_ERRORS as e:
            raise StorageError(f"read of puzzle #{puzzle_id} failed: {e}") from e

    async def _fetch_list(self, statement) -> list[Puzzle]:
        try:
            async with self._sessions() as session:
                result = await session.execute(statement)
                return [Puzzle.model_validate(row) for row in result.scalars()]
        except DRIVER_ERRORS as e:
            raise StorageError(f"query failed: {e}") from e

    # Live reads

    def query_all(self) -> AsyncIterator[list[Puzzle]]:
        """All puzzles, newest id first, re-emitted after every write."""
        return self._watch(self.fetch_all)

    def query_ranking(self) -> AsyncIterator[list[Puzzle]]:
        """Solved puzzles in ranking order, re-emitted after every write."""
        return self._watch(self.fetch_ranking)

    def query_puzzle(self, puzzle_id: int) -> AsyncIterator[Puzzle | None]:
        return self._watch(lambda: self.fetch_puzzle(puzzle_id))

    async def _watch(self, fetch: Callable[[], Awaitable[T]]) -> AsyncIterator[T]:
        seen = None
        while True:
            async with self._changed:
                await self._changed.wait_for(lambda: self._version != seen)
                seen = self._version
            yield await fetch()
