import pytest

from captionflow.core.errors import TierRequiredError
from captionflow.features.tiers.service import TIER_CAPABILITIES, Feature, is_allowed, require_feature
from captionflow.models.user import Tier, User


def test_free_tier_has_no_features():
    assert TIER_CAPABILITIES[Tier.FREE] == frozenset()
    assert not any(is_allowed(f, Tier.FREE) for f in Feature)


def test_pro_excludes_team_features():
    assert is_allowed(Feature.BRAND_VOICE, Tier.PRO)
    assert is_allowed(Feature.UNLIMITED_CAPTIONS, "pro")
    assert not is_allowed(Feature.TEAM_SEATS, Tier.PRO)
    assert not is_allowed(Feature.SHARED_LIBRARY, Tier.PRO)


def test_team_has_everything():
    assert all(is_allowed(f, Tier.TEAM) for f in Feature)


def test_unknown_tier_gets_nothing():
    assert not is_allowed(Feature.BRAND_VOICE, "enterprise")
    assert not is_allowed(Feature.BRAND_VOICE, None)


def test_require_feature_raises_upgrade_required():
    with pytest.raises(TierRequiredError) as exc:
        require_feature(User(id="u1", subscription_tier=Tier.FREE), Feature.SCHEDULING)
    assert exc.value.status_code == 403
    assert exc.value.code == "upgrade_required"
    assert "Scheduling" in exc.value.message

    require_feature(User(id="u2", subscription_tier=Tier.PRO), Feature.SCHEDULING)
