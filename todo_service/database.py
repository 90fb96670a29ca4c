import logging
import ssl

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from todo_service.config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def _connect_args(backend: str, settings: Settings) -> dict:
    if backend == "sqlite":
        return {"check_same_thread": False}

    args = {"connect_timeout": settings.db_connect_timeout}
    if settings.db_ssl:
        if backend == "postgresql":
            args["sslmode"] = "require"
        elif backend == "mysql":
            # Hosted MySQL proxies present certificates we cannot verify
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            args["ssl"] = context
    return args


def make_engine(settings: Settings) -> Engine:
    """Create an engine with a bounded connection pool for the configured database"""
    url = make_url(settings.get_database_url())
    backend = url.get_backend_name()
    connect_args = _connect_args(backend, settings)

    if backend == "sqlite":
        # In-memory databases only live as long as their single connection
        pool_kwargs = {"poolclass": StaticPool} if url.database in (None, "", ":memory:") else {}
    else:
        pool_kwargs = {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_pre_ping": settings.db_pool_pre_ping,
        }

    logger.info(
        f"Configuring {backend} engine for host={url.host or '-'} database={url.database or ':memory:'}"
    )
    return create_engine(
        url,
        connect_args=connect_args,
        echo=settings.debug,  # Log SQL queries in debug mode
        **pool_kwargs
    )
