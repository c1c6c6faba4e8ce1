import asyncio
import logging
import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from fieldoffice.utils.constants import DB_SETTINGS, CACHE_SETTINGS
from fieldoffice.db.models import Base

logger = logging.getLogger('FieldOffice')

def create_sqlalchemy_engine(database_url: str) -> AsyncEngine:
    """Create SQLAlchemy async engine"""
    if database_url.startswith('sqlite'):
        # SQLite has no connection pool to size
        return create_async_engine(database_url, echo=DB_SETTINGS['ECHO'])
    return create_async_engine(
        database_url,
        echo=DB_SETTINGS['ECHO'],
        pool_size=DB_SETTINGS['POOL_SIZE'],
        max_overflow=DB_SETTINGS['MAX_OVERFLOW'],
        pool_timeout=DB_SETTINGS['POOL_TIMEOUT'],
        pool_recycle=DB_SETTINGS['POOL_RECYCLE']
    )

def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

async def init_db(engine: AsyncEngine) -> None:
    """Create portal tables if they do not exist"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized successfully")
    except SQLAlchemyError as e:
        logger.error(f"Error initializing database schema: {e}")
        raise

async def init_redis(redis_url: str) -> redis.Redis:
    """Initialize Redis connection with retry logic"""
    for attempt in range(CACHE_SETTINGS['REDIS_RETRY_COUNT']):
        try:
            redis_client = redis.Redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=CACHE_SETTINGS['REDIS_TIMEOUT'],
                socket_connect_timeout=CACHE_SETTINGS['REDIS_TIMEOUT'],
                retry_on_timeout=True,
                health_check_interval=30
            )

            # Test the connection
            await redis_client.ping()

            logger.info("Redis connection initialized successfully")
            return redis_client

        except redis.TimeoutError:
            logger.warning(f"Redis connection timeout (attempt {attempt + 1}/{CACHE_SETTINGS['REDIS_RETRY_COUNT']})")
            if attempt < CACHE_SETTINGS['REDIS_RETRY_COUNT'] - 1:
                await asyncio.sleep(CACHE_SETTINGS['REDIS_RETRY_DELAY'])
        except redis.ConnectionError as e:
            logger.error(f"Redis connection error (attempt {attempt + 1}): {e}")
            if attempt < CACHE_SETTINGS['REDIS_RETRY_COUNT'] - 1:
                await asyncio.sleep(CACHE_SETTINGS['REDIS_RETRY_DELAY'])

    raise ConnectionError("Failed to establish Redis connection after retries")
