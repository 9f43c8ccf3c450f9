"""
Brand voice service.
- get_brand_voice(db, user_id)
- get_brand_voice_by_id(db, user_id, brand_voice_id)
- save_brand_voice(db, user_id, examples, selected_tone)
"""

from datetime import datetime, timezone
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy import select, insert, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError

from captionflow.core.database import Database, brand_voices, as_utc
from captionflow.core.errors import ValidationError
from captionflow.models.brand_voice import BrandVoice, MAX_BRAND_VOICE_EXAMPLES
from captionflow.models.caption import Tone

_EXAMPLE_COLUMNS = [f"example_{i}" for i in range(1, MAX_BRAND_VOICE_EXAMPLES + 1)]


def row_to_brand_voice(row: Row) -> BrandVoice:
    examples = [getattr(row, col) for col in _EXAMPLE_COLUMNS]
    return BrandVoice(
        id=row.id,
        user_id=row.user_id,
        examples=[ex for ex in examples if ex],
        selected_tone=row.selected_tone,
        updated_at=as_utc(row.updated_at),
    )


def get_brand_voice(db: Database, user_id: str) -> Optional[BrandVoice]:
    with db.session() as session:
        row = session.execute(select(brand_voices).where(brand_voices.c.user_id == user_id)).first()
        return row_to_brand_voice(row) if row else None


def get_brand_voice_by_id(db: Database, user_id: str, brand_voice_id: str) -> Optional[BrandVoice]:
    """Owned lookup: a voice belonging to someone else reads as missing."""
    with db.session() as session:
        row = session.execute(
            select(brand_voices).where(
                brand_voices.c.id == brand_voice_id,
                brand_voices.c.user_id == user_id,
            )
        ).first()
        return row_to_brand_voice(row) if row else None


def _existing_brand_voice_id(session, user_id: str) -> Optional[str]:
    return session.execute(
        select(brand_voices.c.id).where(brand_voices.c.user_id == user_id)
    ).scalar()


def _update_brand_voice(session, user_id: str, values: dict) -> None:
    session.execute(update(brand_voices).where(brand_voices.c.user_id == user_id).values(**values))


def save_brand_voice(
    db: Database,
    user_id: str,
    examples: Sequence[str],
    selected_tone: Tone,
    now: Optional[datetime] = None,
) -> BrandVoice:
    """Create or replace the user's brand voice as a whole record."""
    cleaned = [ex.strip() for ex in examples if ex and ex.strip()]
    if not 1 <= len(cleaned) <= MAX_BRAND_VOICE_EXAMPLES:
        raise ValidationError(f"Provide between 1 and {MAX_BRAND_VOICE_EXAMPLES} example captions")

    padded = cleaned + [None] * (MAX_BRAND_VOICE_EXAMPLES - len(cleaned))
    values = dict(zip(_EXAMPLE_COLUMNS, padded))
    values["selected_tone"] = Tone(selected_tone).value
    values["updated_at"] = now or datetime.now(timezone.utc)

    with db.session() as session:
        existing = _existing_brand_voice_id(session, user_id)
        if existing:
            _update_brand_voice(session, user_id, values)

    if not existing:
        try:
            with db.session() as session:
                session.execute(insert(brand_voices).values(id=str(uuid4()), user_id=user_id, **values))
        except IntegrityError:
            # Created concurrently by another request
            with db.session() as session:
                _update_brand_voice(session, user_id, values)

    return get_brand_voice(db, user_id)
