"""Combines the all-puzzles and ranking feeds into one UI state.

The aggregator holds the latest PuzzleUiState, replays it to every new
subscriber and pushes a fresh state whenever either feed re-emits. Feeds
are started by the first subscriber and torn down a grace period after
the last one leaves, so quick unsubscribe/resubscribe cycles reuse them.

User intents (add, update, delete, mark solved) never block the caller:
they are queued and applied in order by a single background writer, and
their effect arrives through the subscription.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing

from puzzlemaster.errors import StorageError, ValidationError
from puzzlemaster.repository import PuzzleRepository
from puzzlemaster.schemas import Puzzle, PuzzleUiState

logger = logging.getLogger(__name__)


def _as_storage_error(error: Exception, action: str) -> StorageError:
    if isinstance(error, StorageError):
        return error
    wrapped = StorageError(f"{action} failed: {error!r}")
    wrapped.__cause__ = error
    return wrapped


def combine(all_puzzles: Sequence[Puzzle], ranking: Sequence[Puzzle]) -> PuzzleUiState:
    return PuzzleUiState(all_puzzles=tuple(all_puzzles), ranking=tuple(ranking))


class PuzzleAggregator:
    def __init__(self, repository: PuzzleRepository, grace_period: float = 5.0):
        self._repository = repository
        self._grace_period = grace_period
        self._state = PuzzleUiState()
        self._subscribers: set[asyncio.Queue] = set()
        self._upstream: asyncio.Task | None = None
        self._teardown: asyncio.TimerHandle | None = None
        self._writes: asyncio.Queue = asyncio.Queue()
        self._writer: asyncio.Task | None = None

    @property
    def state(self) -> PuzzleUiState:
        return self._state

    @property
    def feeds_active(self) -> bool:
        return self._upstream is not None and not self._upstream.done()

    # Subscription

    async def subscribe(self) -> AsyncIterator[PuzzleUiState]:
        """Yield the current state, then every new one.

        Raises StorageError if a feed or a write fails while subscribed.
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        queue.put_nowait(self._state)
        self._start_feeds()
        try:
            while True:
                item = await queue.get()
                if isinstance(item, StorageError):
                    raise item
                yield item
        finally:
            self._subscribers.discard(queue)
            if not self._subscribers:
                self._schedule_teardown()

    def watch_puzzle(self, puzzle_id: int) -> AsyncIterator[Puzzle | None]:
        """Live view of a single puzzle, None while it does not exist."""
        return self._repository.puzzle(puzzle_id)

    def _start_feeds(self):
        if self._teardown is not None:
            self._teardown.cancel()
            self._teardown = None
        if not self.feeds_active:
            logger.debug("Starting puzzle feeds")
            self._upstream = asyncio.create_task(self._combine_feeds())

    def _schedule_teardown(self):
        if self._upstream is None or self._teardown is not None:
            return
        loop = asyncio.get_running_loop()
        self._teardown = loop.call_later(self._grace_period, self._stop_feeds)

    def _stop_feeds(self):
        self._teardown = None
        if self._upstream is not None:
            logger.debug("No subscribers left, stopping puzzle feeds")
            self._upstream.cancel()
            self._upstream = None

    async def _combine_feeds(self):
        latest: dict[str, list[Puzzle]] = {}

        async def follow(name: str, feed: AsyncIterator[list[Puzzle]]):
            async with aclosing(feed):
                async for snapshot in feed:
                    latest[name] = snapshot
                    # Nothing to show until both feeds have produced once
                    if len(latest) == 2:
                        self._publish(combine(latest["all"], latest["ranking"]))

        feeds = [
            asyncio.create_task(follow("all", self._repository.all_puzzles())),
            asyncio.create_task(follow("ranking", self._repository.ranking())),
        ]
        try:
            done, _ = await asyncio.wait(feeds, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                task.result()
        except Exception as e:
            error = _as_storage_error(e, "puzzle feed")
            logger.error(f"Puzzle feed failed: {error}")
            self._fail(error)
        finally:
            for task in feeds:
                task.cancel()
            await asyncio.gather(*feeds, return_exceptions=True)

    def _publish(self, state: PuzzleUiState):
        if state == self._state:
            return
        self._state = state
        for queue in self._subscribers:
            queue.put_nowait(state)

    def _fail(self, error: StorageError):
        for queue in self._subscribers:
            queue.put_nowait(error)

    # User intents

    def add_puzzle(self, puzzle: Puzzle) -> asyncio.Future:
        if not puzzle.title.strip():
            raise ValidationError("Puzzle title must not be blank")
        return self._dispatch(self._repository.insert, puzzle)

    def update_puzzle(self, puzzle: Puzzle) -> asyncio.Future:
        return self._dispatch(self._repository.update, puzzle)

    def delete_puzzle(self, puzzle: Puzzle) -> asyncio.Future:
        return self._dispatch(self._repository.delete, puzzle)

    def mark_solved(self, puzzle: Puzzle, attempts: int) -> asyncio.Future:
        return self.update_puzzle(puzzle.model_copy(update={"solved": True, "attempts": attempts}))

    def _dispatch(self, write, puzzle: Puzzle) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._writes.put_nowait((write, puzzle, future))
        if self._writer is None or self._writer.done():
            self._writer = asyncio.create_task(self._drain_writes())
        return future

    async def _drain_writes(self):
        while True:
            write, puzzle, future = await self._writes.get()
            try:
                result = await write(puzzle)
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as e:
                error = _as_storage_error(e, write.__name__)
                logger.error(f"{write.__name__} of puzzle #{puzzle.id} failed: {error}")
                self._fail(error)
                if not future.cancelled():
                    future.set_exception(error)
                    # Already delivered to subscribers, callers may ignore the future
                    future.exception()
            else:
                if not future.cancelled():
                    future.set_result(result)
            finally:
                self._writes.task_done()

    async def wait_idle(self):
        """Wait until every queued write has been applied."""
        await self._writes.join()

    async def aclose(self):
        if self._teardown is not None:
            self._teardown.cancel()
            self._teardown = None

        tasks = [task for task in (self._writer, self._upstream) if task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._writer = self._upstream = None

        while not self._writes.empty():
            _, _, future = self._writes.get_nowait()
            future.cancel()
            self._writes.task_done()
