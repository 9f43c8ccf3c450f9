from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"
    TEAM = "team"


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    subscription_tier: Tier = Tier.FREE
    subscription_status: str = "active"
    daily_caption_count: int = 0
    last_reset_date: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None

    @property
    def is_paid(self) -> bool:
        return self.subscription_tier in (Tier.PRO, Tier.TEAM)
