from datetime import datetime
from typing import List
from pydantic import BaseModel, ConfigDict

from captionflow.models.caption import Tone

MAX_BRAND_VOICE_EXAMPLES = 5


class BrandVoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    examples: List[str]
    selected_tone: Tone
    updated_at: datetime
