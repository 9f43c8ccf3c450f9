"""
Caption domain models.

Tone and Platform are closed sets; anything else is rejected at the
request-validation boundary.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class Tone(str, Enum):
    CASUAL = "casual"
    PROFESSIONAL = "professional"
    FUNNY = "funny"
    EDGY = "edgy"
    WITTY = "witty"


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    LINKEDIN = "linkedin"
    TWITTER = "twitter"


class SourceType(str, Enum):
    TEXT = "text"
    VISION = "vision"


class ScheduledStatus(str, Enum):
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    FAILED = "failed"
    CANCELED = "canceled"


class Caption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    content: str
    hashtags: List[str]
    platform: List[Platform]
    tone: Tone
    brand_voice_id: Optional[str] = None
    source_type: SourceType = SourceType.TEXT
    is_favorite: bool = False
    scheduled_at: Optional[datetime] = None
    scheduled_status: Optional[ScheduledStatus] = None
    publish_platforms: Optional[List[Platform]] = None
    created_at: datetime
    updated_at: datetime
