"""Completion response parsers.

LabeledTextParser reads the ``CAPTION:`` / ``HASHTAGS:`` template the prompt
asks for. JsonCaptionParser reads the strict structured-output variant. Both
return ParsedCaption, so the pipeline does not care which one it was given.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import List, Protocol

from captionflow.core.errors import GenerationFailedError
from captionflow.core.logging import log_event

logger = logging.getLogger("captionflow")

_CAPTION_RE = re.compile(r"CAPTION:\s*([\s\S]*?)(?=HASHTAGS:|$)", re.IGNORECASE)
_HASHTAGS_RE = re.compile(r"HASHTAGS:\s*(.*)", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedCaption:
    caption: str
    hashtags: List[str] = field(default_factory=list)


class CaptionParser(Protocol):
    json_mode: bool

    def parse(self, text: str) -> ParsedCaption:
        ...


def normalize_hashtags(tokens) -> List[str]:
    """Strip one leading '#' per token and drop empties."""
    tags = []
    for token in tokens:
        tag = re.sub(r"^#", "", str(token).strip())
        if tag:
            tags.append(tag)
    return tags


class LabeledTextParser:
    """Parse ``CAPTION: ...`` / ``HASHTAGS: ...`` free text."""

    json_mode = False

    def parse(self, text: str) -> ParsedCaption:
        text = text or ""
        caption_match = _CAPTION_RE.search(text)
        hashtags_match = _HASHTAGS_RE.search(text)

        caption = caption_match.group(1).strip() if caption_match else ""
        hashtags_text = hashtags_match.group(1).strip() if hashtags_match else ""
        hashtags = normalize_hashtags(hashtags_text.split())

        if not caption_match:
            log_event(
                "warning",
                "parser.degraded",
                event_type="parser",
                extra={"reason": "missing CAPTION label", "hashtags_found": len(hashtags)},
            )

        return ParsedCaption(caption=caption, hashtags=hashtags)


class JsonCaptionParser:
    """Parse ``{"caption": str, "hashtags": [str]}`` structured output."""

    json_mode = True

    def parse(self, text: str) -> ParsedCaption:
        try:
            doc = json.loads(text or "")
        except json.JSONDecodeError as e:
            logger.error("parser.invalid_json", extra={"error": str(e)})
            raise GenerationFailedError()

        if not isinstance(doc, dict):
            raise GenerationFailedError()

        caption = doc.get("caption")
        raw_tags = doc.get("hashtags") or []
        if not isinstance(caption, str) or not isinstance(raw_tags, list):
            logger.error("parser.invalid_shape", extra={"keys": sorted(doc.keys())})
            raise GenerationFailedError()

        return ParsedCaption(caption=caption.strip(), hashtags=normalize_hashtags(raw_tags))


def parse_caption_response(text: str) -> ParsedCaption:
    """Convenience wrapper around the default labeled-text parser."""
    return LabeledTextParser().parse(text)
