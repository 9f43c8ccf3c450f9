"""
Database configuration and connection management.

This module provides:
- SQLAlchemy Core table definitions
- An explicitly constructed Database holding the engine and session factory
- A FastAPI dependency resolving the application's Database
"""
from typing import Optional, Generator
from contextlib import contextmanager
from datetime import datetime, timezone
import logging

from fastapi import Request
from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    JSON,
    Text,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.sql import func


logger = logging.getLogger("captionflow")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration (server databases only)
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored timestamp to an aware UTC datetime.

    SQLite hands back naive datetimes even for timezone-aware columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Database:
    """Engine + session factory, built once per application and injected."""

    def __init__(self, url: str, *, echo: bool = False, engine: Optional[Engine] = None):
        if not url and engine is None:
            raise ValueError(
                "DATABASE_URL is not configured. "
                "Set DATABASE_URL in environment or .env file."
            )
        self.url = url
        self.engine = engine or self._create_engine(url, echo)
        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        if url.startswith("sqlite"):
            return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
        return create_engine(
            url,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            pool_pre_ping=True,
            echo=echo,
        )

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Transactional session scope.

        Usage:
            with db.session() as session:
                session.execute(...)
        Commits on success, rolls back on any exception.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create all tables defined in metadata (idempotent)."""
        metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        """
        Drop all tables defined in metadata.

        WARNING: This is destructive! Only use in tests or development.
        """
        metadata.drop_all(bind=self.engine)

    def check_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database connection check failed: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Database:
    """FastAPI dependency: the Database attached to the running application."""
    return request.app.state.db


# Users (mirrors the auth provider's user id)
users = Table(
    'users',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('email', String(320), nullable=True),
    Column('subscription_tier', String(20), nullable=False, server_default='free'),
    Column('subscription_status', String(50), nullable=False, server_default='active'),
    Column('daily_caption_count', Integer, nullable=False, server_default='0'),
    Column('last_reset_date', DateTime(timezone=True), nullable=True),
    Column('stripe_customer_id', String(100), nullable=True, index=True),
    Column('subscription_id', String(100), nullable=True),
    Column('current_period_end', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Generated captions (with optional scheduling overlay)
captions = Table(
    'captions',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('content', Text, nullable=False),
    Column('hashtags', JSON, nullable=False),
    Column('platform', JSON, nullable=False),
    Column('tone', String(20), nullable=False),
    Column('brand_voice_id', String(36), nullable=True),
    Column('source_type', String(20), nullable=False, server_default='text'),
    Column('is_favorite', Boolean, nullable=False, default=False),
    Column('scheduled_at', DateTime(timezone=True), nullable=True),
    Column('scheduled_status', String(20), nullable=True),
    Column('publish_platforms', JSON, nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
    # Listing pattern: (user_id, created_at desc)
    Index('idx_captions_user_created', 'user_id', 'created_at'),
    # Scheduled listing pattern: (user_id, scheduled_status, scheduled_at)
    Index('idx_captions_user_schedule', 'user_id', 'scheduled_status', 'scheduled_at'),
)

# Brand voices: at most one per user
brand_voices = Table(
    'brand_voices',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), nullable=False, unique=True),
    Column('example_1', Text, nullable=True),
    Column('example_2', Text, nullable=True),
    Column('example_3', Text, nullable=True),
    Column('example_4', Text, nullable=True),
    Column('example_5', Text, nullable=True),
    Column('selected_tone', String(20), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
)

# Social connections: one row per (user_id, platform)
social_connections = Table(
    'social_connections',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('platform', String(20), nullable=False),
    Column('platform_handle', String(200), nullable=True),
    Column('platform_user_id', String(200), nullable=True),
    Column('access_token', Text, nullable=True),
    Column('refresh_token', Text, nullable=True),
    Column('token_expires_at', DateTime(timezone=True), nullable=True),
    Column('profile_dna', JSON, nullable=True),
    Column('connected_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('user_id', 'platform', name='uq_social_connections_user_platform'),
)

# Billing events (webhook idempotency)
billing_events = Table(
    'billing_events',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('stripe_event_id', String(100), nullable=False),
    Column('event_type', String(100), nullable=False, index=True),
    Column('received_at', DateTime(timezone=True), nullable=False),
    Column('payload_hash', String(64), nullable=False),  # SHA256 of raw body
    Column('processed', Boolean, nullable=False, default=False),
    Column('processed_at', DateTime(timezone=True), nullable=True),
    Column('error', Text, nullable=True),
    UniqueConstraint('stripe_event_id', name='uq_billing_events_stripe_id'),
)

# Public waitlist
waitlist = Table(
    'waitlist',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('email', String(320), nullable=False),
    Column('handle', String(200), nullable=False),
    Column('platform', String(50), nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('email', name='uq_waitlist_email'),
)

# Beta program signups
beta_signups = Table(
    'beta_signups',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('email', String(320), nullable=False),
    Column('invite_code', String(16), nullable=False),
    Column('status', String(20), nullable=False, server_default='pending'),
    Column('created_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('email', name='uq_beta_signups_email'),
    UniqueConstraint('invite_code', name='uq_beta_signups_invite_code'),
)
