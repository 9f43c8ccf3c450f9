"""Generation pipeline at the service layer."""
import base64
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import select

from captionflow.core.database import captions, users
from captionflow.core.errors import GenerationFailedError, NotFoundError, QuotaExceededError, ValidationError
from captionflow.features.brand_voice.service import save_brand_voice
from captionflow.features.captions.parser import JsonCaptionParser
from captionflow.features.captions.service import (
    MAX_IMAGE_BYTES,
    CaptionOptions,
    delete_caption,
    generate_caption,
    generate_caption_from_image,
    get_caption,
    list_captions,
    set_favorite,
    validate_image,
)
from captionflow.features.users.service import require_user
from captionflow.models.caption import Platform, SourceType, Tone
from captionflow.models.user import Tier

OPTIONS = CaptionOptions(tone=Tone.CASUAL, platforms=[Platform.INSTAGRAM])


def _caption_rows(db):
    with db.session() as session:
        return session.execute(select(captions)).all()


def _count(db, user_id):
    with db.session() as session:
        return session.execute(select(users.c.daily_caption_count).where(users.c.id == user_id)).scalar_one()


def test_generate_persists_caption_and_charges_one(db, fake_llm, settings, make_user):
    uid = make_user("u1")
    result = generate_caption(db, fake_llm, require_user(db, uid), "sunset at the beach", OPTIONS, settings=settings)

    assert result.caption.content == "Golden hour hits different by the sea"
    assert result.caption.hashtags == ["sunset", "beach", "goldenhour", "travel", "ocean"]
    assert result.remaining_today == 9
    assert result.tier == "free"
    assert _count(db, uid) == 1

    stored = get_caption(db, uid, result.caption.id)
    assert stored.source_type == SourceType.TEXT
    assert stored.platform == [Platform.INSTAGRAM]
    assert stored.is_favorite is False


def test_quota_exceeded_skips_provider_call(db, fake_llm, settings, make_user):
    uid = make_user("u-full", count=10)
    with pytest.raises(QuotaExceededError):
        generate_caption(db, fake_llm, require_user(db, uid), "sunset at the beach", OPTIONS, settings=settings)
    assert fake_llm.requests == []
    assert _caption_rows(db) == []


def test_provider_failure_charges_nothing(db, fake_llm, settings, make_user):
    uid = make_user("u-fail")
    fake_llm.error = GenerationFailedError()
    with pytest.raises(GenerationFailedError):
        generate_caption(db, fake_llm, require_user(db, uid), "sunset at the beach", OPTIONS, settings=settings)
    assert _count(db, uid) == 0
    assert _caption_rows(db) == []


def test_insert_failure_rolls_back_quota(db, fake_llm, settings, make_user):
    uid = make_user("u-dbfail")
    with patch("captionflow.features.captions.service.insert", side_effect=RuntimeError("disk full")):
        with pytest.raises(RuntimeError):
            generate_caption(db, fake_llm, require_user(db, uid), "sunset at the beach", OPTIONS, settings=settings)
    assert _count(db, uid) == 0


def test_concurrent_request_losing_the_race_is_rejected(db, fake_llm, settings, make_user):
    uid = make_user("u-race", count=9)
    stale_view = require_user(db, uid)
    generate_caption(db, fake_llm, stale_view, "first request here", OPTIONS, settings=settings)

    # Second request passed its check at count 9 as well
    with patch("captionflow.features.captions.service.check_quota") as check:
        check.return_value.used = 9
        with pytest.raises(QuotaExceededError):
            generate_caption(db, fake_llm, stale_view, "second request here", OPTIONS, settings=settings)
    assert _count(db, uid) == 10
    assert len(_caption_rows(db)) == 1


def test_empty_caption_policy(db, fake_llm, settings, make_user):
    uid = make_user("u-empty")
    fake_llm.responses = ["no labels at all", "still no labels"]

    kept = generate_caption(db, fake_llm, require_user(db, uid), "sunset at the beach", OPTIONS, settings=settings)
    assert kept.caption.content == ""

    strict = settings.model_copy(update={"REJECT_EMPTY_CAPTIONS": True})
    with pytest.raises(GenerationFailedError):
        generate_caption(db, fake_llm, require_user(db, uid), "sunset at the beach", OPTIONS, settings=strict)
    assert _count(db, uid) == 1


def test_json_parser_switches_request_to_json_mode(db, fake_llm, settings, make_user):
    uid = make_user("u-json")
    fake_llm.responses = ['{"caption": "Structured", "hashtags": ["#one"]}']
    result = generate_caption(
        db, fake_llm, require_user(db, uid), "sunset at the beach", OPTIONS,
        settings=settings, parser=JsonCaptionParser(),
    )
    assert result.caption.content == "Structured"
    assert fake_llm.requests[0].json_mode is True


def test_brand_voice_examples_only_used_for_paid_tiers(db, fake_llm, settings, make_user):
    pro = make_user("u-pro", tier=Tier.PRO)
    voice = save_brand_voice(db, pro, ["lowercase vibes only"], Tone.CASUAL)
    options = CaptionOptions(tone=Tone.CASUAL, platforms=[Platform.INSTAGRAM], brand_voice_id=voice.id)

    result = generate_caption(db, fake_llm, require_user(db, pro), "new shoes", options, settings=settings)
    assert "lowercase vibes only" in fake_llm.requests[-1].system
    assert result.remaining_today is None
    assert get_caption(db, pro, result.caption.id).brand_voice_id == voice.id

    # Another user's voice id is ignored and not stored
    other = make_user("u-other", tier=Tier.PRO)
    foreign = generate_caption(db, fake_llm, require_user(db, other), "new shoes", options, settings=settings)
    assert "lowercase vibes only" not in fake_llm.requests[-1].system
    assert foreign.caption.brand_voice_id is None
    assert get_caption(db, other, foreign.caption.id).brand_voice_id is None


def test_free_tier_does_not_store_brand_voice_reference(db, fake_llm, settings, make_user):
    pro = make_user("u-voice-owner", tier=Tier.PRO)
    voice = save_brand_voice(db, pro, ["all caps energy"], Tone.EDGY)
    free = make_user("u-free-voice")
    options = CaptionOptions(tone=Tone.CASUAL, platforms=[Platform.INSTAGRAM], brand_voice_id=voice.id)

    result = generate_caption(db, fake_llm, require_user(db, free), "new shoes", options, settings=settings)
    assert "all caps energy" not in fake_llm.requests[-1].system
    assert get_caption(db, free, result.caption.id).brand_voice_id is None


def test_hashtags_capped_at_requested_count(db, fake_llm, settings, make_user):
    uid = make_user("u-tags")
    tags = " ".join(f"#tag{i}" for i in range(20))
    fake_llm.responses = [f"CAPTION: Too many tags\nHASHTAGS: {tags}"]
    options = CaptionOptions(tone=Tone.CASUAL, platforms=[Platform.INSTAGRAM], num_hashtags=5)

    result = generate_caption(db, fake_llm, require_user(db, uid), "sunset at the beach", options, settings=settings)
    assert result.caption.hashtags == ["tag0", "tag1", "tag2", "tag3", "tag4"]
    assert get_caption(db, uid, result.caption.id).hashtags == result.caption.hashtags


def test_vision_generation(db, fake_llm, settings, make_user):
    uid = make_user("u-vision")
    image_b64 = base64.b64encode(b"\x89PNG" + b"\x00" * 200).decode()
    result = generate_caption_from_image(
        db, fake_llm, require_user(db, uid), image_b64, "image/png", OPTIONS, settings=settings
    )
    request = fake_llm.requests[0]
    assert request.image is not None and request.image.mime_type == "image/png"
    assert request.user.startswith("Analyze this image")
    assert get_caption(db, uid, result.caption.id).source_type == SourceType.VISION


def test_validate_image_rejects_bad_input():
    with pytest.raises(ValidationError):
        validate_image("QUJD", "image/gif")
    with pytest.raises(ValidationError):
        validate_image("not base64!!", "image/png")
    too_big = "A" * (MAX_IMAGE_BYTES * 4 // 3 + 8)
    with pytest.raises(ValidationError) as exc:
        validate_image(too_big, "image/jpeg")
    assert "4MB" in exc.value.message


def test_library_listing_delete_and_favorite(db, fake_llm, settings, make_user):
    uid = make_user("u-lib")
    t0 = datetime(2026, 3, 15, 9, 0, tzinfo=timezone.utc)
    first = generate_caption(db, fake_llm, require_user(db, uid), "first post", OPTIONS, settings=settings, now=t0)
    second = generate_caption(
        db, fake_llm, require_user(db, uid), "second post", OPTIONS, settings=settings, now=t0 + timedelta(hours=1)
    )
    assert [c.id for c in list_captions(db, uid)] == [second.caption.id, first.caption.id]

    assert set_favorite(db, uid, first.caption.id, True).is_favorite is True

    with pytest.raises(NotFoundError):
        delete_caption(db, "someone-else", first.caption.id)
    delete_caption(db, uid, first.caption.id)
    assert [c.id for c in list_captions(db, uid)] == [second.caption.id]
