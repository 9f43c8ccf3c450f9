"""
Brand voice API routes.

- GET  /api/brand-voices
- POST /api/brand-voices (Pro/Team)
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from captionflow.core.auth import get_current_user_id
from captionflow.core.database import Database, get_db
from captionflow.features.brand_voice.service import get_brand_voice, save_brand_voice
from captionflow.features.tiers.service import Feature, require_tier_feature
from captionflow.models.brand_voice import MAX_BRAND_VOICE_EXAMPLES, BrandVoice
from captionflow.models.caption import Tone
from captionflow.models.user import User

router = APIRouter(tags=["brand-voice"])


class BrandVoiceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    examples: List[str] = Field(..., min_length=1, max_length=MAX_BRAND_VOICE_EXAMPLES)
    selected_tone: Tone = Field(..., alias="selectedTone")


def _serialize(voice: BrandVoice) -> dict:
    return {
        "id": voice.id,
        "examples": voice.examples,
        "selectedTone": voice.selected_tone.value,
        "updatedAt": voice.updated_at.isoformat(),
    }


@router.get("/brand-voices")
def get_brand_voice_route(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    voice = get_brand_voice(db, user_id)
    return {"success": True, "brandVoice": _serialize(voice) if voice else None}


@router.post("/brand-voices")
def save_brand_voice_route(
    body: BrandVoiceRequest,
    user: User = Depends(require_tier_feature(Feature.BRAND_VOICE)),
    db: Database = Depends(get_db),
):
    voice = save_brand_voice(db, user.id, body.examples, body.selected_tone)
    return {"success": True, "brandVoice": _serialize(voice)}
