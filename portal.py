"""FieldOffice portal process

Connects to the database and, when enabled, Redis, loads or seeds the portal
state and keeps a GovernanceEngine resident until interrupted. Hosting
surfaces embed the engine through build_engine; while serving, the process
periodically reloads state saved by other workers.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

import aiohttp
import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from fieldoffice.config.settings import Settings, get_settings
from fieldoffice.db.database import create_session_factory, create_sqlalchemy_engine, init_db, init_redis
from fieldoffice.db.repository import StateRepository
from fieldoffice.governance.delivery import DiscordWebhookSink, LoggingSink, NotificationSink
from fieldoffice.governance.engine import GovernanceEngine
from fieldoffice.governance.errors import LockUnavailable
from fieldoffice.governance.locks import LocalLockProvider, LockProvider, RedisLockProvider
from fieldoffice.governance.state import PortalState
from fieldoffice.utils.constants import APP_VERSION, LOCK_SETTINGS
from fieldoffice.utils.defaults import build_initial_state
from fieldoffice.utils.logger import cleanup_old_logs, setup_logging

logger = logging.getLogger('FieldOffice')

async def initialize_services(settings: Settings) -> Tuple[AsyncEngine, Optional[redis.Redis]]:
    """Initialize database and Redis connections"""
    try:
        logger.info("Initializing database connection...")
        db_engine = create_sqlalchemy_engine(settings.sqlalchemy_url)
        await init_db(db_engine)
        logger.info("Database connection established")

        redis_client = None
        if settings.redis_enabled:
            logger.info("Initializing Redis connection...")
            redis_client = await init_redis(settings.redis_url)
            logger.info("Redis connection established")

        return db_engine, redis_client
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        raise

async def load_or_seed_state(repository: StateRepository, settings: Settings) -> PortalState:
    """Load the saved portal state, creating and saving a fresh one on first run"""
    state = await repository.load_state()
    if state is None:
        logger.info("No saved portal state found, seeding defaults")
        state = build_initial_state(settings.bootstrap_admin)
        await repository.save_state(state)
    return state

def build_engine(settings: Settings,
                 state: PortalState,
                 repository: Optional[StateRepository] = None,
                 redis_client: Optional[redis.Redis] = None,
                 http_session: Optional[aiohttp.ClientSession] = None) -> GovernanceEngine:
    """Wire the engine to the configured lock provider and delivery sinks"""
    locks: LockProvider
    if redis_client is not None:
        locks = RedisLockProvider(
            redis_client,
            timeout=settings.decision_lock_timeout,
            blocking_timeout=settings.decision_lock_wait
        )
    else:
        locks = LocalLockProvider()

    sinks: List[NotificationSink] = [LoggingSink()]
    if settings.discord_webhook_url and http_session is not None:
        sinks.append(DiscordWebhookSink(
            settings.discord_webhook_url,
            session=http_session,
            username=settings.webhook_username
        ))

    logger.info(
        f"Engine configured with {type(locks).__name__} and "
        f"{', '.join(type(s).__name__ for s in sinks)}"
    )
    return GovernanceEngine(state, locks=locks, sinks=sinks, repository=repository)

async def cleanup_services(engine: Optional[GovernanceEngine] = None,
                           db_engine: Optional[AsyncEngine] = None,
                           redis_client: Optional[redis.Redis] = None,
                           http_session: Optional[aiohttp.ClientSession] = None) -> None:
    """Cleanup function to properly close connections"""
    try:
        if engine:
            logger.info("Waiting for pending notification deliveries...")
            await engine.aclose()

        if http_session:
            await http_session.close()

        if db_engine:
            logger.info("Closing database engine...")
            await db_engine.dispose()

        if redis_client:
            logger.info("Closing Redis connection...")
            await redis_client.aclose()

        logger.info("All services cleaned up successfully")
    except Exception as e:
        logger.error(f"Error during cleanup: {e}")

def log_summary(engine: GovernanceEngine) -> None:
    state = engine.state
    director = state.director()
    logger.info(
        f"Portal ready: {len(state.members)} members, {len(state.requests)} pending requests, "
        f"{len(state.requests.list_archive())} archived requests, "
        f"director: {director.nickname if director else 'vacant'}"
    )

async def serve(engine: GovernanceEngine,
                stop: asyncio.Event,
                interval: float = LOCK_SETTINGS['REFRESH_INTERVAL']) -> None:
    """Keep the engine resident until stop is set, reloading state other workers saved"""
    logger.info("Portal engine serving")
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            try:
                await engine.refresh()
                logger.debug("Portal state refreshed")
            except (LockUnavailable, SQLAlchemyError) as e:
                logger.error(f"Error refreshing portal state: {e}")

async def main() -> None:
    """Main entry point for the FieldOffice portal"""
    settings = get_settings()
    setup_logging(level=settings.log_level, log_dir=settings.log_dir)
    logger.info(f"Starting FieldOffice v{APP_VERSION}")

    db_engine: Optional[AsyncEngine] = None
    redis_client: Optional[redis.Redis] = None
    http_session: Optional[aiohttp.ClientSession] = None
    engine: Optional[GovernanceEngine] = None

    try:
        removed = cleanup_old_logs(log_dir=settings.log_dir)
        if removed:
            logger.info(f"Removed {removed} old log files")

        db_engine, redis_client = await initialize_services(settings)
        repository = StateRepository(create_session_factory(db_engine))
        state = await load_or_seed_state(repository, settings)

        if settings.discord_webhook_url:
            http_session = aiohttp.ClientSession()

        engine = build_engine(settings, state, repository, redis_client, http_session)
        log_summary(engine)
        await serve(engine, asyncio.Event())

    except Exception as e:
        logger.critical(f"Critical error in main: {e}")
        raise

    finally:
        await cleanup_services(engine, db_engine, redis_client, http_session)

if __name__ == "__main__":
    try:
        asyncio.run(main())

    except KeyboardInterrupt:
        logger.info("Portal shutdown initiated by user")

    finally:
        logger.info("Portal shutdown complete")
