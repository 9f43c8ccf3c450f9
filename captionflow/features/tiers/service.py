"""
captionflow/features/tiers/service.py

Tier capability table.

One declarative mapping from subscription tier to the features it unlocks,
consulted by every gated route through require_tier_feature().
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from fastapi import Depends

from captionflow.core.auth import get_current_user
from captionflow.core.errors import TierRequiredError
from captionflow.models.user import Tier, User


class Feature(str, Enum):
    BRAND_VOICE = "brand_voice"
    COMPETITOR_RESEARCH = "competitor_research"
    SCHEDULING = "scheduling"
    VIRAL_OPTIMIZATION = "viral_optimization"
    UNLIMITED_CAPTIONS = "unlimited_captions"
    # Declared for the team tier; no behavior beyond the label yet
    TEAM_SEATS = "team_seats"
    SHARED_LIBRARY = "shared_library"


_PRO_FEATURES = frozenset({
    Feature.BRAND_VOICE,
    Feature.COMPETITOR_RESEARCH,
    Feature.SCHEDULING,
    Feature.VIRAL_OPTIMIZATION,
    Feature.UNLIMITED_CAPTIONS,
})

TIER_CAPABILITIES: Dict[Tier, FrozenSet[Feature]] = {
    Tier.FREE: frozenset(),
    Tier.PRO: _PRO_FEATURES,
    Tier.TEAM: _PRO_FEATURES | {Feature.TEAM_SEATS, Feature.SHARED_LIBRARY},
}

UPGRADE_MESSAGES: Dict[Feature, str] = {
    Feature.BRAND_VOICE: "Brand voice training requires Pro subscription",
    Feature.COMPETITOR_RESEARCH: "Competitor Analysis is a Pro feature. Upgrade to unlock.",
    Feature.SCHEDULING: "Social Scheduling is a Pro feature. Upgrade to unlock.",
    Feature.TEAM_SEATS: "Team seats require a Team subscription",
    Feature.SHARED_LIBRARY: "The shared caption library requires a Team subscription",
}


def _coerce_tier(tier: Union[Tier, str, None]) -> Optional[Tier]:
    if tier is None:
        return None
    try:
        return Tier(tier)
    except ValueError:
        return None


def is_allowed(feature: Feature, tier: Union[Tier, str, None]) -> bool:
    """True when the tier's capability set includes the feature.

    Unknown or missing tiers get nothing.
    """
    resolved = _coerce_tier(tier)
    if resolved is None:
        return False
    return feature in TIER_CAPABILITIES[resolved]


def require_feature(user: User, feature: Feature) -> None:
    """Raise TierRequiredError unless the user's tier includes the feature."""
    if not is_allowed(feature, user.subscription_tier):
        message = UPGRADE_MESSAGES.get(feature, "Upgrade required to use this feature")
        raise TierRequiredError(message)


def require_tier_feature(feature: Feature):
    """FastAPI dependency factory resolving the current user and gating on a feature."""
    def _dependency(user: User = Depends(get_current_user)) -> User:
        require_feature(user, feature)
        return user

    return _dependency
