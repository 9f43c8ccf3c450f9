"""
Caption optimizer routes.

- POST /api/analyze-caption
- POST /api/boost-caption
- POST /api/generate-hooks
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from captionflow.api.deps import get_llm
from captionflow.core.auth import get_current_user_id
from captionflow.features.llm.client import GenerationClient
from captionflow.features.optimizer.service import analyze_caption, boost_caption, generate_hooks
from captionflow.models.caption import Platform, Tone

router = APIRouter(tags=["optimizer"])


class AnalyzeCaptionRequest(BaseModel):
    caption: str = Field(..., min_length=1, max_length=5000)
    platform: List[Platform] = Field(..., min_length=1)


class BoostCaptionRequest(AnalyzeCaptionRequest):
    tone: Tone
    feedback: Optional[List[str]] = None
    suggestion: Optional[str] = None
    score: Optional[float] = Field(None, ge=0, le=100)


class HooksRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    platform: Platform = Platform.INSTAGRAM


@router.post("/analyze-caption")
def analyze_caption_route(
    body: AnalyzeCaptionRequest,
    user_id: str = Depends(get_current_user_id),
    llm: GenerationClient = Depends(get_llm),
):
    return analyze_caption(llm, body.caption, [p.value for p in body.platform])


@router.post("/boost-caption")
def boost_caption_route(
    body: BoostCaptionRequest,
    user_id: str = Depends(get_current_user_id),
    llm: GenerationClient = Depends(get_llm),
):
    boosted = boost_caption(
        llm,
        body.caption,
        [p.value for p in body.platform],
        body.tone.value,
        feedback=body.feedback,
        suggestion=body.suggestion,
        score=body.score,
    )
    return {"boostedCaption": boosted}


@router.post("/generate-hooks")
def generate_hooks_route(
    body: HooksRequest,
    user_id: str = Depends(get_current_user_id),
    llm: GenerationClient = Depends(get_llm),
):
    return generate_hooks(llm, body.content, body.platform.value)
