"""Public pre-launch waitlist."""

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from captionflow.core.database import Database, waitlist, utc_now
from captionflow.core.errors import ConflictError
from captionflow.core.logging import log_event


def join_waitlist(db: Database, email: str, handle: str, platform: str) -> None:
    """Add an email to the waitlist.

    Raises:
        ConflictError: the email is already on the list
    """
    normalized = email.strip().lower()
    try:
        with db.session() as session:
            session.execute(
                insert(waitlist).values(
                    email=normalized,
                    handle=handle.strip(),
                    platform=platform.strip(),
                    created_at=utc_now(),
                )
            )
    except IntegrityError:
        raise ConflictError("This email is already on the waitlist")

    log_event("info", "waitlist.joined", event_type="waitlist", extra={"platform": platform})
