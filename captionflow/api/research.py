"""Competitor research route (Pro/Team)."""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from captionflow.api.deps import get_llm
from captionflow.features.llm.client import GenerationClient
from captionflow.features.research.service import (
    MAX_COMPETITOR_CAPTIONS,
    MIN_COMPETITOR_CAPTIONS,
    analyze_competitor,
)
from captionflow.features.tiers.service import Feature, require_tier_feature
from captionflow.models.caption import Platform
from captionflow.models.user import User

router = APIRouter(prefix="/research", tags=["research"])


class CompetitorRequest(BaseModel):
    captions: List[str] = Field(..., min_length=MIN_COMPETITOR_CAPTIONS, max_length=MAX_COMPETITOR_CAPTIONS)
    platform: Platform
    niche: str = Field(..., min_length=2, max_length=100)


@router.post("/analyze-competitor")
def analyze_competitor_route(
    body: CompetitorRequest,
    user: User = Depends(require_tier_feature(Feature.COMPETITOR_RESEARCH)),
    llm: GenerationClient = Depends(get_llm),
):
    result = analyze_competitor(llm, body.captions, body.platform, body.niche)
    return {"success": True, **result}
