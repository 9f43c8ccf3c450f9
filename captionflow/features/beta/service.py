"""
Beta program signups.

Each signup gets a one-off invite code and starts as ``pending``. Sending the
invite email is handled outside this service.
"""

import secrets
from typing import Any, Dict, List

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError

from captionflow.core.database import Database, as_utc, beta_signups, utc_now
from captionflow.core.errors import ConflictError
from captionflow.core.logging import log_event

BETA_STATUS_PENDING = "pending"


def generate_invite_code() -> str:
    """16 upper-case hex characters."""
    return secrets.token_hex(8).upper()


def join_beta(db: Database, email: str) -> Dict[str, Any]:
    """Register an email for the beta.

    Raises:
        ConflictError: the email is already registered
    """
    normalized = email.strip().lower()
    invite_code = generate_invite_code()
    try:
        with db.session() as session:
            session.execute(
                insert(beta_signups).values(
                    email=normalized,
                    invite_code=invite_code,
                    status=BETA_STATUS_PENDING,
                    created_at=utc_now(),
                )
            )
    except IntegrityError:
        raise ConflictError("Email already registered for beta")

    log_event("info", "beta.signup", event_type="beta")
    return {"email": normalized, "invite_code": invite_code, "status": BETA_STATUS_PENDING}


def list_beta_signups(db: Database) -> List[Dict[str, Any]]:
    with db.session() as session:
        rows = session.execute(
            select(beta_signups).order_by(beta_signups.c.created_at.desc(), beta_signups.c.id.desc())
        ).all()
    return [
        {
            "id": row.id,
            "email": row.email,
            "inviteCode": row.invite_code,
            "status": row.status,
            "createdAt": as_utc(row.created_at).isoformat(),
        }
        for row in rows
    ]
