"""
Caption API routes.

- POST   /api/generate-caption
- POST   /api/generate-caption-vision
- GET    /api/captions
- DELETE /api/captions?id=
- PATCH  /api/captions/{caption_id}/favorite
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from captionflow.api.deps import get_caption_parser, get_llm
from captionflow.core.auth import get_current_user, get_current_user_id, get_settings
from captionflow.core.config import Settings
from captionflow.core.database import Database, get_db
from captionflow.core.errors import ValidationError
from captionflow.features.captions.parser import CaptionParser
from captionflow.features.captions.prompts import DEFAULT_NUM_HASHTAGS, MAX_HASHTAGS, MIN_HASHTAGS
from captionflow.features.captions.service import (
    CaptionOptions,
    GenerationResult,
    delete_caption,
    generate_caption,
    generate_caption_from_image,
    list_captions,
    set_favorite,
)
from captionflow.features.llm.client import GenerationClient
from captionflow.models.caption import Platform, Tone
from captionflow.models.user import User

router = APIRouter(tags=["captions"])

# Mirrors ALLOWED_IMAGE_TYPES in the captions service
ImageMimeType = Literal["image/jpeg", "image/png", "image/webp"]


class _CaptionOptionsBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tone: Tone
    platform: List[Platform] = Field(..., min_length=1)
    brand_voice_id: Optional[str] = Field(None, alias="brandVoiceId")
    num_hashtags: int = Field(DEFAULT_NUM_HASHTAGS, alias="numHashtags", ge=MIN_HASHTAGS, le=MAX_HASHTAGS)

    def to_options(self) -> CaptionOptions:
        return CaptionOptions(
            tone=self.tone,
            platforms=list(self.platform),
            brand_voice_id=self.brand_voice_id,
            num_hashtags=self.num_hashtags,
        )


class GenerateCaptionRequest(_CaptionOptionsBody):
    description: str = Field(..., min_length=5, max_length=1000)


class GenerateVisionRequest(_CaptionOptionsBody):
    image_base64: str = Field(..., alias="imageBase64", min_length=100)
    mime_type: ImageMimeType = Field(..., alias="mimeType")


class FavoriteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_favorite: bool = Field(..., alias="isFavorite")


def _generation_response(result: GenerationResult) -> dict:
    caption = result.caption
    return {
        "success": True,
        "caption": {
            "id": caption.id,
            "content": caption.content,
            "hashtags": caption.hashtags,
            "platform": [p.value for p in caption.platform],
            "tone": caption.tone.value,
        },
        "tier": result.tier,
        "remainingToday": result.remaining_today,
    }


@router.post("/generate-caption")
def generate_caption_route(
    body: GenerateCaptionRequest,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
    llm: GenerationClient = Depends(get_llm),
    parser: CaptionParser = Depends(get_caption_parser),
    settings: Settings = Depends(get_settings),
):
    result = generate_caption(
        db, llm, user, body.description, body.to_options(), settings=settings, parser=parser
    )
    return _generation_response(result)


@router.post("/generate-caption-vision")
def generate_caption_vision_route(
    body: GenerateVisionRequest,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
    llm: GenerationClient = Depends(get_llm),
    parser: CaptionParser = Depends(get_caption_parser),
    settings: Settings = Depends(get_settings),
):
    result = generate_caption_from_image(
        db, llm, user, body.image_base64, body.mime_type, body.to_options(), settings=settings, parser=parser
    )
    return _generation_response(result)


@router.get("/captions")
def list_captions_route(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    captions = list_captions(db, user_id)
    return {"success": True, "captions": [c.model_dump(mode="json") for c in captions]}


@router.delete("/captions")
def delete_caption_route(
    caption_id: Optional[str] = Query(None, alias="id"),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    if not caption_id:
        raise ValidationError("Caption ID required")
    delete_caption(db, user_id, caption_id)
    return {"success": True}


@router.patch("/captions/{caption_id}/favorite")
def favorite_caption_route(
    caption_id: str,
    body: FavoriteRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    caption = set_favorite(db, user_id, caption_id, body.is_favorite)
    return {"success": True, "caption": caption.model_dump(mode="json")}
