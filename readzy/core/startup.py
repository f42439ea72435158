from contextlib import asynccontextmanager
import logging

import redis.asyncio as redis
from fastapi import FastAPI
from redis.exceptions import RedisError

from .settings import Settings
from .logging_config import setup_logging
from .rate_limiting import reset_rate_limiter, setup_rate_limiter
from .database import create_engine, create_session_factory, init_schema, shutdown_engine
from readzy.services.auth_service import AuthService
from readzy.services.book_service import BookService
from readzy.services.book_store import BookStore
from readzy.services.user_service import UserService

logger = logging.getLogger(__name__)


async def connect_redis(url: str):
    """Return a connected Redis client, or ``None`` when the server is unreachable."""
    client = redis.from_url(url, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Could not connect to Redis, rate limiting disabled: {e}")
        await client.aclose()
        return None
    logger.info("Successfully connected to Redis.")
    return client


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    setup_logging(settings)
    app.state.settings = settings

    # Database
    app.state.db_engine = create_engine(settings.DATABASE_URL)
    app.state.db_session_factory = create_session_factory(app.state.db_engine)
    await init_schema(app.state.db_engine)

    app.state.user_service = UserService(app.state.db_session_factory)
    app.state.auth_service = AuthService(
        app.state.user_service,
        jwt_secret=settings.JWT_SECRET,
        jwt_algorithm=settings.JWT_ALGORITHM,
        jwt_expires_minutes=settings.JWT_ACCESS_TOKEN_EXPIRES_MINUTES,
    )
    app.state.book_service = BookService(
        BookStore(app.state.db_session_factory),
        max_active_books=settings.MAX_ACTIVE_BOOKS,
    )
    if settings.JWT_SECRET == "change-me":
        logger.warning("JWT_SECRET is set to the default value; configure a real secret.")

    app.state.redis_client = None
    if settings.RATE_LIMIT_ENABLED:
        app.state.redis_client = await connect_redis(settings.REDIS_URL)
        if app.state.redis_client:
            setup_rate_limiter(
                redis_client=app.state.redis_client,
                default_limit=settings.RATE_LIMIT_DEFAULT,
                window_seconds=settings.RATE_LIMIT_WINDOW,
                scope_limits={"auth": settings.RATE_LIMIT_AUTH},
            )

    logger.info("Readzy service started", extra={"max_active_books": settings.MAX_ACTIVE_BOOKS})
    yield

    logger.info("Shutting down Readzy service")
    reset_rate_limiter()
    if app.state.redis_client:
        await app.state.redis_client.aclose()
    await shutdown_engine(getattr(app.state, "db_engine", None))
