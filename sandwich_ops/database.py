"""
Database plumbing shared by the ledger and the entity tables.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine with backend-specific pool settings.

    Args:
        url: SQLAlchemy database URL
        echo: Log every SQL statement

    Returns:
        Configured engine
    """
    if url.startswith("sqlite"):
        # SQLite doesn't support pool_size and max_overflow
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(url):
            # Every session must see the same in-memory database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20,
        )

    logger.debug(f"Created engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:  # type: ignore[type-arg]
    """
    Create the session factory used by the services.

    Objects stay readable after their transaction commits so results can be
    handed back to callers.
    """
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine, metadata_base: Optional[Any] = None) -> None:
    """
    Create the ledger table and every entity table.

    Args:
        engine: Engine to create the tables on
        metadata_base: Declarative base to create; defaults to the shared Base
    """
    # Register every mapped table on the shared metadata
    from . import entities  # noqa: F401
    from .soft_delete import models  # noqa: F401

    base = metadata_base or Base
    base.metadata.create_all(bind=engine)
    logger.info(f"Initialized {len(base.metadata.tables)} tables")
