"""
captionflow/features/captions/service.py

Caption generation pipeline and caption library.

Flow for one generation:
  check_quota -> brand voice lookup -> build prompt -> provider call
  -> parse -> (consume_quota + insert caption) in one transaction

Quota is only charged when the caption row is written.
"""

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Row

from captionflow.core.config import Settings
from captionflow.core.database import Database, captions, as_utc
from captionflow.core.errors import GenerationFailedError, NotFoundError, ValidationError
from captionflow.core.logging import log_event
from captionflow.features.brand_voice.service import get_brand_voice_by_id
from captionflow.features.captions.parser import CaptionParser, LabeledTextParser
from captionflow.features.captions.prompts import (
    DEFAULT_NUM_HASHTAGS,
    CaptionPrompt,
    GenerationMode,
    build_caption_prompt,
)
from captionflow.features.llm.client import CompletionRequest, GenerationClient, ImagePayload
from captionflow.features.quota.service import check_quota, consume_quota, remaining_today
from captionflow.features.tiers.service import Feature, is_allowed
from captionflow.models.brand_voice import BrandVoice
from captionflow.models.caption import Caption, Platform, SourceType, Tone
from captionflow.models.user import User

MAX_IMAGE_BYTES = 4 * 1024 * 1024
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")

JSON_OUTPUT_INSTRUCTION = (
    'Respond with a JSON object of the form {"caption": "<caption text>", '
    '"hashtags": ["tag1", "tag2"]} instead of the labeled lines.'
)


@dataclass(frozen=True)
class CaptionOptions:
    tone: Tone
    platforms: List[Platform]
    brand_voice_id: Optional[str] = None
    num_hashtags: int = DEFAULT_NUM_HASHTAGS


@dataclass(frozen=True)
class GenerationResult:
    caption: Caption
    remaining_today: Optional[int]
    tier: str


def row_to_caption(row: Row) -> Caption:
    return Caption(
        id=row.id,
        user_id=row.user_id,
        content=row.content,
        hashtags=list(row.hashtags or []),
        platform=list(row.platform or []),
        tone=row.tone,
        brand_voice_id=row.brand_voice_id,
        source_type=row.source_type,
        is_favorite=bool(row.is_favorite),
        scheduled_at=as_utc(row.scheduled_at),
        scheduled_status=row.scheduled_status,
        publish_platforms=list(row.publish_platforms) if row.publish_platforms is not None else None,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def validate_image(image_base64: str, mime_type: str) -> ImagePayload:
    """Check mime type, decodability and the decoded size cap."""
    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(f"Unsupported image type: {mime_type}")

    # base64 is ~33% larger than the raw bytes
    estimated_size = (len(image_base64) * 3) / 4
    if estimated_size > MAX_IMAGE_BYTES:
        raise ValidationError("Image too large. Maximum size is 4MB.")

    try:
        base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("imageBase64 is not valid base64 data")

    return ImagePayload(data_base64=image_base64, mime_type=mime_type)


def _resolve_brand_voice(db: Database, user: User, brand_voice_id: Optional[str]) -> Optional[BrandVoice]:
    """Owned voice for tiers that have the feature; anything else is ignored."""
    if not brand_voice_id or not is_allowed(Feature.BRAND_VOICE, user.subscription_tier):
        return None
    return get_brand_voice_by_id(db, user.id, brand_voice_id)


def _run_pipeline(
    db: Database,
    llm: GenerationClient,
    parser: CaptionParser,
    user: User,
    options: CaptionOptions,
    *,
    settings: Settings,
    mode: GenerationMode,
    description: Optional[str] = None,
    image: Optional[ImagePayload] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    limit = settings.FREE_DAILY_LIMIT
    status = check_quota(db, user, limit=limit, now=now)

    voice = _resolve_brand_voice(db, user, options.brand_voice_id)
    brand_voice_id = voice.id if voice else None

    prompt: CaptionPrompt = build_caption_prompt(
        options.tone,
        options.platforms,
        tier=user.subscription_tier,
        num_hashtags=options.num_hashtags,
        brand_voice_examples=list(voice.examples) if voice else [],
        description=description,
        mode=mode,
    )
    user_message = prompt.user
    if parser.json_mode:
        user_message = f"{user_message}\n\n{JSON_OUTPUT_INSTRUCTION}"

    raw = llm.complete(
        CompletionRequest(
            system=prompt.system,
            user=user_message,
            image=image,
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
            json_mode=parser.json_mode,
        )
    )
    parsed = parser.parse(raw)
    if not parsed.caption and settings.REJECT_EMPTY_CAPTIONS:
        log_event("warning", "caption.empty_rejected", user_id=user.id, event_type="caption",
                  error_code="generation_failed")
        raise GenerationFailedError()

    # The requested count is only a hint to the model
    hashtags = parsed.hashtags[: options.num_hashtags]

    created_at = now or datetime.now(timezone.utc)
    caption_id = str(uuid4())
    source_type = SourceType.VISION if mode == GenerationMode.VISION else SourceType.TEXT
    platforms = [Platform(p).value for p in options.platforms]

    # Quota increment and insert commit or roll back together
    with db.session() as session:
        consume_quota(session, user.id, limit=limit)
        session.execute(
            insert(captions).values(
                id=caption_id,
                user_id=user.id,
                content=parsed.caption,
                hashtags=hashtags,
                platform=platforms,
                tone=Tone(options.tone).value,
                brand_voice_id=brand_voice_id,
                source_type=source_type.value,
                is_favorite=False,
                created_at=created_at,
                updated_at=created_at,
            )
        )

    caption = Caption(
        id=caption_id,
        user_id=user.id,
        content=parsed.caption,
        hashtags=hashtags,
        platform=platforms,
        tone=options.tone,
        brand_voice_id=brand_voice_id,
        source_type=source_type,
        created_at=created_at,
        updated_at=created_at,
    )
    remaining = remaining_today(user.subscription_tier, status.used + 1, limit)
    log_event(
        "info",
        "caption.generated",
        user_id=user.id,
        event_type="caption",
        extra={"caption_id": caption_id, "mode": mode.value, "hashtags": len(hashtags),
               "remaining_today": remaining},
    )
    return GenerationResult(caption=caption, remaining_today=remaining, tier=user.subscription_tier.value)


def generate_caption(
    db: Database,
    llm: GenerationClient,
    user: User,
    description: str,
    options: CaptionOptions,
    *,
    settings: Settings,
    parser: Optional[CaptionParser] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """Generate, persist and return a caption for a text description."""
    return _run_pipeline(
        db, llm, parser or LabeledTextParser(), user, options,
        settings=settings, mode=GenerationMode.TEXT, description=description, now=now,
    )


def generate_caption_from_image(
    db: Database,
    llm: GenerationClient,
    user: User,
    image_base64: str,
    mime_type: str,
    options: CaptionOptions,
    *,
    settings: Settings,
    parser: Optional[CaptionParser] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """Generate, persist and return a caption for an uploaded image."""
    image = validate_image(image_base64, mime_type)
    return _run_pipeline(
        db, llm, parser or LabeledTextParser(), user, options,
        settings=settings, mode=GenerationMode.VISION, image=image, now=now,
    )


def list_captions(db: Database, user_id: str) -> List[Caption]:
    with db.session() as session:
        rows = session.execute(
            select(captions)
            .where(captions.c.user_id == user_id)
            .order_by(captions.c.created_at.desc())
        ).all()
        return [row_to_caption(row) for row in rows]


def get_caption(db: Database, user_id: str, caption_id: str) -> Caption:
    """Fetch an owned caption. Missing and foreign ids are both 404."""
    with db.session() as session:
        row = session.execute(
            select(captions).where(captions.c.id == caption_id, captions.c.user_id == user_id)
        ).first()
    if not row:
        raise NotFoundError("Caption not found")
    return row_to_caption(row)


def delete_caption(db: Database, user_id: str, caption_id: str) -> None:
    with db.session() as session:
        result = session.execute(
            delete(captions).where(captions.c.id == caption_id, captions.c.user_id == user_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("Caption not found")


def set_favorite(db: Database, user_id: str, caption_id: str, is_favorite: bool) -> Caption:
    with db.session() as session:
        result = session.execute(
            update(captions)
            .where(captions.c.id == caption_id, captions.c.user_id == user_id)
            .values(is_favorite=is_favorite, updated_at=datetime.now(timezone.utc))
        )
        if result.rowcount == 0:
            raise NotFoundError("Caption not found")
    return get_caption(db, user_id, caption_id)
