# networth/database.py
"""
Database connection for the persistent price cache.

This module configures SQLAlchemy for the optional SqlCacheStore:
- SQLite (file or in-memory) for single-user installs and tests
- Any other SQLAlchemy URL with default pooling

The engine is created on demand from settings.cache_url rather than at
import time, since most embedders use the in-memory store.
"""

import logging

from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import settings
from .models import Base

logger = logging.getLogger(__name__)


def create_cache_engine(url: str | None = None) -> Engine:
    """
    Create a SQLAlchemy engine for the cache and ensure its table exists.

    Args:
        url: SQLAlchemy URL; defaults to settings.cache_url

    Returns:
        Engine: Configured SQLAlchemy engine

    Raises:
        ValueError: If neither url nor settings.cache_url is set
    """
    url = url or settings.cache_url
    if not url:
        raise ValueError("No cache URL configured (set CACHE_URL)")

    if url.startswith("sqlite"):
        # StaticPool keeps a single connection so in-memory SQLite is shared
        logger.info(f"Configuring SQLite price cache: {url}")
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        logger.info("Configuring SQL price cache")
        engine = create_engine(url, pool_pre_ping=True)

    Base.metadata.create_all(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to the cache engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
