"""
Caption optimizer: viral score, rewrite ("boost") and hook ideas.

These tools never touch the database or the daily quota.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from captionflow.core.errors import GenerationFailedError
from captionflow.features.captions.prompts import (
    build_boost_prompt,
    build_hooks_prompt,
    build_score_prompt,
)
from captionflow.features.llm.client import CompletionRequest, GenerationClient, complete_json

logger = logging.getLogger("captionflow")

ANALYZE_TEMPERATURE = 0.7
BOOST_TEMPERATURE = 0.8
HOOKS_TEMPERATURE = 0.9


def _clamp_score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        raise GenerationFailedError()
    return max(0, min(100, score))


def analyze_caption(llm: GenerationClient, caption: str, platforms: Sequence[str]) -> Dict[str, Any]:
    """Score a caption 0-100 with a hook/flow/cta breakdown, feedback and one suggestion."""
    prompt = build_score_prompt(caption, platforms)
    doc = complete_json(
        llm,
        CompletionRequest(system=prompt.system, user=prompt.user, temperature=ANALYZE_TEMPERATURE, json_mode=True),
    )
    if "score" not in doc:
        logger.error("optimizer.invalid_shape", extra={"keys": sorted(doc.keys())})
        raise GenerationFailedError()

    breakdown = doc.get("breakdown") or {}
    return {
        "score": _clamp_score(doc["score"]),
        "breakdown": {key: breakdown.get(key) for key in ("hook", "flow", "cta")},
        "feedback": [str(item) for item in (doc.get("feedback") or [])],
        "suggestion": doc.get("suggestion") or "",
    }


def boost_caption(
    llm: GenerationClient,
    caption: str,
    platforms: Sequence[str],
    tone: str,
    *,
    feedback: Optional[Sequence[str]] = None,
    suggestion: Optional[str] = None,
    score: Optional[float] = None,
) -> str:
    """Rewrite a caption for engagement; the original comes back if the rewrite is blank."""
    prompt = build_boost_prompt(caption, platforms, tone, feedback=feedback, suggestion=suggestion, score=score)
    boosted = llm.complete(
        CompletionRequest(system=prompt.system, user=prompt.user, temperature=BOOST_TEMPERATURE)
    )
    boosted = (boosted or "").strip().strip('"').strip()
    return boosted or caption


def generate_hooks(llm: GenerationClient, content: str, platform: str = "instagram") -> Dict[str, List[str]]:
    prompt = build_hooks_prompt(content, platform)
    doc = complete_json(
        llm,
        CompletionRequest(system=prompt.system, user=prompt.user, temperature=HOOKS_TEMPERATURE, json_mode=True),
    )
    hooks = doc.get("hooks")
    if not isinstance(hooks, list):
        logger.error("optimizer.invalid_shape", extra={"keys": sorted(doc.keys())})
        raise GenerationFailedError()
    return {"hooks": [str(h).strip() for h in hooks if str(h).strip()]}
