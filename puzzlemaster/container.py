from contextlib import asynccontextmanager
import logging

from puzzlemaster.aggregator import PuzzleAggregator
from puzzlemaster.db import Settings, get_settings, make_engine
from puzzlemaster.repository import PuzzleRepository
from puzzlemaster.store import PuzzleStore

logger = logging.getLogger(__name__)


class AppContainer:
    """Wires engine -> store -> repository for one application instance."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.engine = make_engine(self.settings.database_url)
        self.store = PuzzleStore(self.engine)
        self.repository = PuzzleRepository(self.store)

    def create_aggregator(self) -> PuzzleAggregator:
        return PuzzleAggregator(self.repository, grace_period=self.settings.state_grace_period_sec)

    async def start(self):
        await self.store.create_tables()
        logger.info(f"Puzzle database ready at {self.engine.url.render_as_string(hide_password=True)}")

    async def aclose(self):
        await self.engine.dispose()


@asynccontextmanager
async def lifespan(settings: Settings | None = None):
    container = AppContainer(settings)
    logging.basicConfig(level=container.settings.log_level.upper())
    await container.start()
    try:
        yield container
    finally:
        await container.aclose()
