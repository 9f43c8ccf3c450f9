"""Current-user profile route."""
from fastapi import APIRouter, Depends

from captionflow.core.auth import get_current_user, get_settings
from captionflow.core.config import Settings
from captionflow.core.database import Database, get_db
from captionflow.features.quota.service import remaining_today, reset_if_stale
from captionflow.models.user import User

router = APIRouter(tags=["user"])


@router.get("/user")
def get_user_route(
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = reset_if_stale(db, user)
    return {
        "success": True,
        "user": {
            "email": user.email,
            "subscription_tier": user.subscription_tier.value,
            "daily_caption_count": user.daily_caption_count,
            "last_reset_date": user.last_reset_date.isoformat() if user.last_reset_date else None,
            "remaining_today": remaining_today(
                user.subscription_tier, user.daily_caption_count, settings.FREE_DAILY_LIMIT
            ),
        },
    }
