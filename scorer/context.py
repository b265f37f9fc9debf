"""
Application context management.
"""
from contextlib import AsyncExitStack
from typing import Optional

import structlog

from scorer.config import Settings
from scorer.db import close_pool
from scorer.fetcher.browser import BrowserPool
from scorer.llm import GenerationClient, get_generation_client
from scorer.scoring import ContentScorer
from scorer.storage import ArticleStore, get_article_store

logger = structlog.get_logger()


class AppContext:
    """
    Application context that holds all initialized components and resources.

    The article store is opened up front. The browser pool and the LLM
    client are opened on first use, since most commands need neither, and
    every component is closed through the exit stack on shutdown.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.exit_stack = AsyncExitStack()
        self.store: Optional[ArticleStore] = None
        self.browser_pool: Optional[BrowserPool] = None
        self.generation_client: Optional[GenerationClient] = None
        self.scorer: Optional[ContentScorer] = None

    async def initialize(self) -> None:
        """Initialize the components every command needs."""
        logger.info("Initializing application context")
        await self._init_store()
        logger.info("Application context initialized")

    async def _init_store(self) -> None:
        """Initialize the article store."""
        logger.info("Initializing article store")
        self.store = await get_article_store(self.settings.storage)
        await self.exit_stack.enter_async_context(self.store)
        logger.info("Article store initialized", type=type(self.store).__name__)

    async def get_browser_pool(self) -> BrowserPool:
        """Return the browser pool, launching the browser on first call."""
        if self.browser_pool is None:
            logger.info("Initializing browser pool")
            pool = BrowserPool(self.settings.browser)
            self.browser_pool = await self.exit_stack.enter_async_context(pool)
            logger.info("Browser pool initialized",
                        max_pages=self.settings.browser.max_concurrent_pages)
        return self.browser_pool

    async def get_scorer(self) -> ContentScorer:
        """Return the content scorer, creating the generation client on first call."""
        if self.scorer is None:
            logger.info("Initializing generation client")
            self.generation_client = get_generation_client(self.settings.llm)
            await self.exit_stack.enter_async_context(self.generation_client)
            self.scorer = ContentScorer(self.generation_client, self.settings.scoring)
            logger.info("Generation client initialized",
                        provider=self.settings.llm.provider.value,
                        model=self.settings.llm.model_name)
        return self.scorer

    async def shutdown(self) -> None:
        """Gracefully shut down all components and resources."""
        logger.info("Shutting down application")

        # Close all components using the exit stack
        await self.exit_stack.aclose()
        await close_pool()

        logger.info("Application shutdown complete")
