from collections.abc import AsyncIterator

from puzzlemaster.schemas import Puzzle
from puzzlemaster.store import PuzzleStore


class PuzzleRepository:
    """Thin seam between the aggregator and the puzzle store."""

    def __init__(self, store: PuzzleStore):
        self._store = store

    def all_puzzles(self) -> AsyncIterator[list[Puzzle]]:
        return self._store.query_all()

    def ranking(self) -> AsyncIterator[list[Puzzle]]:
        return self._store.query_ranking()

    def puzzle(self, puzzle_id: int) -> AsyncIterator[Puzzle | None]:
        return self._store.query_puzzle(puzzle_id)

    async def insert(self, puzzle: Puzzle) -> int:
        return await self._store.insert(puzzle)

    async def update(self, puzzle: Puzzle) -> bool:
        return await self._store.update(puzzle)

    async def delete(self, puzzle: Puzzle) -> bool:
        return await self._store.delete(puzzle)
