"""Service wiring shared by the API, the CLI and the scheduler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine

from clawdtm.catalog import CatalogClient, CatalogSync, Reconciler, SyncStateStore
from clawdtm.categorization import CategorizationRunner, SkillClassifier
from clawdtm.clock import NowFn, utcnow
from clawdtm.community import AgentService, ReviewService, UserService, VoteService
from clawdtm.config import ClawdtmConfig
from clawdtm.db import Base, create_engine, create_session_factory, is_sqlite_url
from clawdtm.db.session import SessionFactory
from clawdtm.directory import ModerationService, SkillDirectory
from clawdtm.indexer import IndexBuilder
from clawdtm.integrations.llm import LLMClient
from clawdtm.ratelimit import RateGate
from clawdtm.stats import LeaderboardBuilder, StatAggregator

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every long-lived collaborator, built once per process from config."""

    config: ClawdtmConfig
    engine: AsyncEngine
    session_factory: SessionFactory
    rate_gate: RateGate
    agents: AgentService
    users: UserService
    votes: VoteService
    reviews: ReviewService
    directory: SkillDirectory
    sync_state: SyncStateStore
    moderation: ModerationService
    catalog_client: CatalogClient
    sync: CatalogSync
    backfill: StatAggregator
    leaderboards: LeaderboardBuilder
    categorizer: CategorizationRunner
    indexer: IndexBuilder
    now_fn: NowFn = utcnow

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()


def build_services(
    config: ClawdtmConfig,
    *,
    engine: AsyncEngine | None = None,
    catalog_transport: httpx.AsyncBaseTransport | None = None,
    now_fn: NowFn = utcnow,
) -> Services:
    if engine is None:
        engine = create_engine(
            config.database.url,
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
            echo=config.database.echo,
        )
    session_factory = create_session_factory(engine)
    limits = config.rate_limit

    rate_gate = RateGate(limit=limits.agent_writes_per_window, window_seconds=limits.window_seconds, now_fn=now_fn)
    sync_state = SyncStateStore(session_factory, now_fn=now_fn)
    catalog_client = CatalogClient(
        config.catalog.base_url,
        page_size=config.catalog.page_size,
        max_attempts=config.catalog.max_attempts,
        retry_delay=config.catalog.retry_delay_seconds,
        timeout=config.catalog.timeout_seconds,
        user_agent=config.catalog.user_agent,
        transport=catalog_transport,
    )
    reconciler = Reconciler(touch_interval=timedelta(minutes=config.sync.touch_interval_minutes), now_fn=now_fn)

    llm = None
    if config.categorization.use_llm:
        llm = LLMClient(config.llm)
        if not llm.is_configured:
            logger.warning("LLM categorization enabled but %s is not set", config.llm.api_key_env)
    classifier = SkillClassifier(llm, max_tags=config.categorization.max_tags)

    return Services(
        config=config,
        engine=engine,
        session_factory=session_factory,
        rate_gate=rate_gate,
        agents=AgentService(
            rate_gate,
            registrations_per_window=limits.registrations_per_window,
            window_seconds=limits.window_seconds,
            now_fn=now_fn,
        ),
        users=UserService(now_fn=now_fn),
        votes=VoteService(now_fn=now_fn),
        reviews=ReviewService(
            min_rating=config.reviews.min_rating,
            max_rating=config.reviews.max_rating,
            max_text_length=config.reviews.max_text_length,
            default_list_limit=config.reviews.list_limit,
            now_fn=now_fn,
        ),
        directory=SkillDirectory(now_fn=now_fn),
        sync_state=sync_state,
        moderation=ModerationService(sync_state, now_fn=now_fn),
        catalog_client=catalog_client,
        sync=CatalogSync(
            session_factory,
            catalog_client,
            config=config.sync,
            reconciler=reconciler,
            store=sync_state,
            now_fn=now_fn,
        ),
        backfill=StatAggregator(session_factory, now_fn=now_fn),
        leaderboards=LeaderboardBuilder(session_factory, now_fn=now_fn),
        categorizer=CategorizationRunner(session_factory, classifier, sync_state, now_fn=now_fn),
        indexer=IndexBuilder(session_factory, now_fn=now_fn),
        now_fn=now_fn,
    )


async def prepare(services: Services) -> None:
    """Create tables when configured to, or always for SQLite."""
    if services.config.database.create_schema or is_sqlite_url(str(services.engine.url)):
        await services.create_schema()
