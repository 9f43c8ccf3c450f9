"""
captionflow/features/scheduling/service.py

Scheduling overlay on saved captions.

Publishing itself is handled by an external provider; this module only records
when and where a caption should go out.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select, update

from captionflow.core.database import Database, captions, as_utc
from captionflow.core.errors import NotFoundError, ValidationError
from captionflow.core.logging import log_event
from captionflow.features.captions.service import get_caption, row_to_caption
from captionflow.models.caption import Caption, Platform, ScheduledStatus


def validate_schedule_time(scheduled_at: datetime, now: Optional[datetime] = None) -> datetime:
    """Return scheduled_at as aware UTC; reject anything not strictly in the future."""
    current = now or datetime.now(timezone.utc)
    when = as_utc(scheduled_at)
    if when <= as_utc(current):
        raise ValidationError("Scheduled time must be in the future")
    return when


def schedule_caption(
    db: Database,
    user_id: str,
    caption_id: str,
    scheduled_at: datetime,
    publish_platforms: Sequence[Platform],
    *,
    now: Optional[datetime] = None,
) -> Caption:
    """Attach a scheduling overlay to an owned caption.

    Raises:
        ValidationError: scheduled_at is not strictly in the future
        NotFoundError: caption missing or not owned
    """
    current = now or datetime.now(timezone.utc)
    when = validate_schedule_time(scheduled_at, current)
    if not publish_platforms:
        raise ValidationError("At least one publish platform is required")

    with db.session() as session:
        result = session.execute(
            update(captions)
            .where(captions.c.id == caption_id, captions.c.user_id == user_id)
            .values(
                scheduled_at=when,
                scheduled_status=ScheduledStatus.SCHEDULED.value,
                publish_platforms=[Platform(p).value for p in publish_platforms],
                updated_at=current,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("Caption not found")

    log_event("info", "caption.scheduled", user_id=user_id, event_type="schedule",
              extra={"caption_id": caption_id, "scheduled_at": when.isoformat()})
    return get_caption(db, user_id, caption_id)


def list_scheduled(db: Database, user_id: str, status: ScheduledStatus = ScheduledStatus.SCHEDULED) -> List[Caption]:
    with db.session() as session:
        rows = session.execute(
            select(captions)
            .where(captions.c.user_id == user_id, captions.c.scheduled_status == ScheduledStatus(status).value)
            .order_by(captions.c.scheduled_at.asc())
        ).all()
        return [row_to_caption(row) for row in rows]
