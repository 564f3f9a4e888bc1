"""Database module."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from marketplace_split.core.settings import MercadoPagoSettings

logger = logging.getLogger("database")


class Base(DeclarativeBase):
    pass


def create_db_engine(settings: MercadoPagoSettings) -> Engine:
    """
    Create the engine backing the credential store.

    Server databases get a bounded pool (no overflow, bounded wait) so that a
    burst of requests queues for a connection instead of opening new ones.
    """
    url = settings.database_url
    if url.startswith("sqlite"):
        # SQLite connections are used from worker threads
        engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(
            url,
            pool_size=settings.db_pool_size,
            max_overflow=0,
            pool_timeout=settings.db_pool_timeout_seconds,
            pool_pre_ping=True,
        )
    logger.info("Database engine created for dialect: %s", engine.dialect.name)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create the tables if they do not exist yet."""
    # models must be imported so their tables are registered on Base
    from marketplace_split.core import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
