"""Prompt templates for caption generation and the auxiliary copy tools.

Everything here is pure string assembly: no I/O, no provider calls.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from captionflow.features.tiers.service import Feature, is_allowed
from captionflow.models.brand_voice import MAX_BRAND_VOICE_EXAMPLES
from captionflow.models.caption import Platform, Tone
from captionflow.models.user import Tier

DEFAULT_NUM_HASHTAGS = 10
MIN_HASHTAGS = 5
MAX_HASHTAGS = 15


class GenerationMode(str, Enum):
    TEXT = "text"
    VISION = "vision"


@dataclass(frozen=True)
class CaptionPrompt:
    system: str
    user: str


TEXT_PREAMBLE = (
    "You are an expert social media caption writer. Write engaging, authentic "
    "captions that don't sound like generic AI-generated content."
)

VISION_PREAMBLE = (
    "You are an expert social media caption writer. You will be given an image. "
    "Analyze the image carefully and generate an engaging, authentic caption based "
    "on its visual content. The caption should NOT sound like generic AI output."
)

PLATFORM_GUIDELINES = {
    Platform.INSTAGRAM: "- Instagram: Under 2,200 characters, use emojis naturally, conversational",
    Platform.TIKTOK: "- TikTok: Under 150 characters, energetic, trend-friendly, punchy",
    Platform.LINKEDIN: "- LinkedIn: Professional, under 3,000 characters, no hashtags in body text",
    Platform.TWITTER: "- Twitter: Under 280 characters, conversational, punchy",
}

VIRAL_OPTIMIZATION_BLOCK = (
    "VIRAL OPTIMIZATION (Pro feature):\n"
    "1. HOOK: The first line MUST be scroll-stopping. Use a curiosity gap, bold claim, "
    "or provocative question. Never start with generic openers.\n"
    "2. READABILITY: Use short, punchy sentences. Add strategic line breaks every 1-2 "
    "sentences. No walls of text.\n"
    "3. CTA: End with a clear call-to-action (ask a question, invite comments, or prompt "
    "saves/shares).\n"
    "4. EMOTION: Trigger at least one strong emotion (surprise, FOMO, inspiration, humor).\n"
    "5. PATTERN INTERRUPT: Include at least one unexpected element that breaks the scroll "
    "pattern."
)

OUTPUT_FORMAT = (
    "Format your response exactly like this:\n"
    "CAPTION: [the caption text]\n"
    "HASHTAGS: [#tag1 #tag2 #tag3 ...] ({num_hashtags} relevant hashtags)"
)


def platform_guidelines(platforms: Sequence[Platform]) -> str:
    """One guideline line per selected platform, in selection order."""
    return "\n".join(PLATFORM_GUIDELINES[Platform(p)] for p in platforms)


def brand_voice_block(examples: Sequence[str]) -> str:
    usable = [ex for ex in examples if ex and ex.strip()][:MAX_BRAND_VOICE_EXAMPLES]
    if not usable:
        return ""
    numbered = "\n".join(f'{i}. "{ex}"' for i, ex in enumerate(usable, start=1))
    return (
        "Match this brand voice. Here are example captions that show the user's style:\n"
        f"{numbered}\n\n"
        "Write in this exact style - same tone, vocabulary, sentence structure, and personality."
    )


def build_caption_prompt(
    tone: Tone,
    platforms: Sequence[Platform],
    *,
    tier: Tier,
    num_hashtags: int = DEFAULT_NUM_HASHTAGS,
    brand_voice_examples: Optional[Sequence[str]] = None,
    description: Optional[str] = None,
    mode: GenerationMode = GenerationMode.TEXT,
) -> CaptionPrompt:
    """Assemble the system and user instructions for one generation.

    The viral block is appended only for tiers with VIRAL_OPTIMIZATION.
    """
    if not platforms:
        raise ValueError("at least one platform is required")
    if not MIN_HASHTAGS <= num_hashtags <= MAX_HASHTAGS:
        raise ValueError(f"num_hashtags must be between {MIN_HASHTAGS} and {MAX_HASHTAGS}")
    if mode == GenerationMode.TEXT and not description:
        raise ValueError("description is required for text generation")

    tone_value = Tone(tone).value
    platform_names = ", ".join(Platform(p).value for p in platforms)
    preamble = VISION_PREAMBLE if mode == GenerationMode.VISION else TEXT_PREAMBLE

    sections = [
        f"{preamble}\n\n"
        f"Tone: {tone_value}\n"
        f"Platforms: {platform_names}\n\n"
        f"Platform-specific guidelines:\n{platform_guidelines(platforms)}"
    ]

    voice = brand_voice_block(brand_voice_examples or [])
    if voice:
        sections.append(voice)

    if is_allowed(Feature.VIRAL_OPTIMIZATION, tier):
        sections.append(VIRAL_OPTIMIZATION_BLOCK)

    output_format = OUTPUT_FORMAT.format(num_hashtags=num_hashtags)
    if mode == GenerationMode.VISION:
        user = (
            "Analyze this image and generate an engaging caption.\n\n"
            f"{output_format}\n\n"
            "Make the caption authentic and engaging. The hashtags should be specific to the "
            "image content, not generic. Mix popular and niche tags."
        )
    else:
        user = (
            f'Generate an engaging caption for this content: "{description}"\n\n'
            f"{output_format}\n\n"
            "Make the caption authentic and engaging. The hashtags should be specific to the "
            "content, not generic. Mix popular and niche tags."
        )

    return CaptionPrompt(system="\n\n".join(sections), user=user)


def build_competitor_prompt(captions: Sequence[str], platform: Platform, niche: str) -> CaptionPrompt:
    system = (
        "You are an elite social media strategist who reverse-engineers viral content. "
        f'Analyze the following {len(captions)} competitor captions from the "{niche}" niche '
        f"on {Platform(platform).value}.\n\n"
        "Extract the hidden patterns that make these posts perform. Be brutally specific, "
        "no generic advice.\n\n"
        "Format your response EXACTLY as a JSON object:\n"
        "{\n"
        '  "nicheDna": {"avgLength": number, "dominantTone": "string", '
        '"emojiDensity": "string", "hashtagStrategy": "string"},\n'
        '  "hookPatterns": [{"pattern": "string", "example": "string", "frequency": "string"}],\n'
        '  "structureBlueprint": {"opening": "string", "body": "string", "closing": "string"},\n'
        '  "winningKeywords": ["string"],\n'
        '  "contentThemes": ["string"],\n'
        '  "goldenRule": "One single sentence summarizing WHY these captions work",\n'
        '  "generatorPrompt": "A ready-to-use instruction to replicate this style (2-3 sentences max)"\n'
        "}"
    )
    block = "\n".join(f'{i}. "{c}"' for i, c in enumerate(captions, start=1))
    return CaptionPrompt(system=system, user=f"Analyze these competitor captions:\n\n{block}")


def build_score_prompt(caption: str, platforms: Sequence[str]) -> CaptionPrompt:
    system = (
        f"You are a social media viral growth expert. Analyze the provided caption for "
        f"{', '.join(platforms)} and provide a viral potential score (0-100).\n\n"
        "Evaluate based on:\n"
        "1. Hook: Is the first line scroll-stopping?\n"
        "2. Readability: Is it easy to scan?\n"
        "3. Call-to-Action (CTA): Is there a clear next step?\n"
        "4. Platform Fit: Does it follow best practices for the chosen platforms?\n\n"
        "Format your response EXACTLY as a JSON object:\n"
        '{"score": number, "breakdown": {"hook": number, "flow": number, "cta": number}, '
        '"feedback": [string, string, string], "suggestion": "One power tip to make this 10x better"}'
    )
    return CaptionPrompt(system=system, user=f'Analyze this caption:\n\n"{caption}"')


def build_boost_prompt(
    caption: str,
    platforms: Sequence[str],
    tone: str,
    *,
    feedback: Optional[Sequence[str]] = None,
    suggestion: Optional[str] = None,
    score: Optional[float] = None,
) -> CaptionPrompt:
    feedback_context = ""
    if feedback:
        points = "\n".join(f"{i}. {f}" for i, f in enumerate(feedback, start=1))
        feedback_context = (
            f"\n\nPrevious AI feedback on this caption:\n{points}\n\n"
            f"Power tip: {suggestion or 'N/A'}\n"
            f"Current score: {score if score is not None else 'Unknown'}/100"
        )
    system = (
        f"You are a viral social media copywriter specializing in {', '.join(platforms)}.\n"
        "Your task is to REWRITE the provided caption to maximize engagement and viral potential.\n\n"
        "Rules:\n"
        "1. Keep the same core message and intent.\n"
        f'2. Match the "{tone}" tone of voice.\n'
        "3. Make the hook (first line) absolutely scroll-stopping.\n"
        "4. Improve readability with short punchy sentences and strategic line breaks.\n"
        "5. Add a clear call-to-action if missing.\n"
        "6. Use platform-specific best practices.\n"
        "7. Address ALL the feedback points listed below."
        f"{feedback_context}\n\n"
        "Return ONLY the improved caption text. No explanations, no quotes around it."
    )
    return CaptionPrompt(system=system, user=f"Rewrite this caption to score 90+:\n\n{caption}")


def build_hooks_prompt(content: str, platform: str) -> CaptionPrompt:
    system = (
        'You are a viral hook specialist. Your goal is to generate 5 "scroll-stopping" first '
        f"lines (hooks) for a social media post on {platform}.\n\n"
        "Hook styles to include:\n"
        "1. Question: Spark curiosity.\n"
        "2. Controversial: State something bold.\n"
        "3. How-to: Promise value.\n"
        "4. Negative: Warn against a mistake.\n"
        "5. Listicle: Promise order/quick learning.\n\n"
        'Return a JSON object with a "hooks" key holding an array of 5 strings.'
    )
    return CaptionPrompt(system=system, user=f'Generate hooks for this content:\n\n"{content}"')
