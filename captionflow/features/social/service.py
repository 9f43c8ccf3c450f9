"""
Social connections.
- list_connections(db, user_id)
- save_connection(db, user_id, platform, ...)
- delete_connection(db, user_id, connection_id)

The OAuth exchange lives with the auth provider; this module only stores
its result. Tokens are written here and never read back out through the API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Row

from captionflow.core.database import Database, social_connections, as_utc, utc_now
from captionflow.core.errors import NotFoundError
from captionflow.core.logging import log_event
from captionflow.models.caption import Platform
from captionflow.models.social_connection import SocialConnection

# Columns safe to return to the client
_PUBLIC_COLUMNS = (
    social_connections.c.id,
    social_connections.c.platform,
    social_connections.c.platform_handle,
    social_connections.c.profile_dna,
    social_connections.c.connected_at,
)


def row_to_connection(row: Row) -> SocialConnection:
    return SocialConnection(
        id=row.id,
        platform=row.platform,
        platform_handle=row.platform_handle,
        profile_dna=row.profile_dna,
        connected_at=as_utc(row.connected_at),
    )


def list_connections(db: Database, user_id: str) -> List[SocialConnection]:
    with db.session() as session:
        rows = session.execute(
            select(*_PUBLIC_COLUMNS)
            .where(social_connections.c.user_id == user_id)
            .order_by(social_connections.c.connected_at.desc())
        ).all()
        return [row_to_connection(row) for row in rows]


def save_connection(
    db: Database,
    user_id: str,
    platform: Platform,
    *,
    platform_handle: Optional[str] = None,
    platform_user_id: Optional[str] = None,
    access_token: Optional[str] = None,
    refresh_token: Optional[str] = None,
    token_expires_at: Optional[datetime] = None,
    profile_dna: Optional[Dict[str, Any]] = None,
) -> SocialConnection:
    """Upsert on (user_id, platform). Reconnecting replaces the stored tokens.

    Entry point for the platform OAuth callback, which runs outside this API.
    """
    platform_value = Platform(platform).value
    values = {
        "platform_handle": platform_handle,
        "platform_user_id": platform_user_id,
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_expires_at": token_expires_at,
        "profile_dna": profile_dna,
        "connected_at": utc_now(),
    }

    with db.session() as session:
        existing = session.execute(
            select(social_connections.c.id).where(
                social_connections.c.user_id == user_id,
                social_connections.c.platform == platform_value,
            )
        ).first()

        if existing:
            connection_id = existing.id
            session.execute(
                update(social_connections).where(social_connections.c.id == connection_id).values(**values)
            )
        else:
            connection_id = str(uuid4())
            session.execute(
                insert(social_connections).values(
                    id=connection_id, user_id=user_id, platform=platform_value, **values
                )
            )

        row = session.execute(
            select(*_PUBLIC_COLUMNS).where(social_connections.c.id == connection_id)
        ).first()

    log_event("info", "social.connected", user_id=user_id, event_type="social", extra={"platform": platform_value})
    return row_to_connection(row)


def delete_connection(db: Database, user_id: str, connection_id: str) -> None:
    with db.session() as session:
        result = session.execute(
            delete(social_connections).where(
                social_connections.c.id == connection_id,
                social_connections.c.user_id == user_id,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("Connection not found")
