from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict

from captionflow.models.caption import Platform


class SocialConnection(BaseModel):
    """Public view of a linked social account. Tokens never leave the store."""
    model_config = ConfigDict(frozen=True)

    id: str
    platform: Platform
    platform_handle: Optional[str] = None
    profile_dna: Optional[Dict[str, Any]] = None
    connected_at: datetime
