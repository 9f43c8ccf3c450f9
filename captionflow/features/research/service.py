"""
Competitor research.

Reverse-engineers the patterns behind a batch of competitor captions and
returns the model's structured analysis untouched.
"""

from typing import Any, Dict, Sequence

from captionflow.core.errors import ValidationError
from captionflow.core.logging import log_event
from captionflow.features.captions.prompts import build_competitor_prompt
from captionflow.features.llm.client import CompletionRequest, GenerationClient, complete_json
from captionflow.models.caption import Platform

MIN_COMPETITOR_CAPTIONS = 3
MAX_COMPETITOR_CAPTIONS = 20
RESEARCH_TEMPERATURE = 0.7
RESEARCH_MAX_TOKENS = 1200


def analyze_competitor(
    llm: GenerationClient,
    captions: Sequence[str],
    platform: Platform,
    niche: str,
) -> Dict[str, Any]:
    """Return {analysis, platform, niche, captionsAnalyzed}.

    Raises:
        ValidationError: caption count outside 3..20
        GenerationFailedError: provider failure or non-JSON output
    """
    cleaned = [c.strip() for c in captions if c and c.strip()]
    if not MIN_COMPETITOR_CAPTIONS <= len(cleaned) <= MAX_COMPETITOR_CAPTIONS:
        raise ValidationError(
            f"Provide between {MIN_COMPETITOR_CAPTIONS} and {MAX_COMPETITOR_CAPTIONS} competitor captions"
        )

    prompt = build_competitor_prompt(cleaned, platform, niche)
    analysis = complete_json(
        llm,
        CompletionRequest(
            system=prompt.system,
            user=prompt.user,
            temperature=RESEARCH_TEMPERATURE,
            max_tokens=RESEARCH_MAX_TOKENS,
            json_mode=True,
        ),
    )
    log_event("info", "research.analyzed", event_type="research",
              extra={"platform": Platform(platform).value, "captions": len(cleaned)})
    return {
        "analysis": analysis,
        "platform": Platform(platform).value,
        "niche": niche,
        "captionsAnalyzed": len(cleaned),
    }
