"""
Scheduling API routes.

- POST /api/schedule-post (Pro/Team)
- GET  /api/schedule-post?status=
"""
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from captionflow.core.auth import get_current_user, get_current_user_id
from captionflow.core.database import Database, get_db
from captionflow.features.scheduling.service import list_scheduled, schedule_caption, validate_schedule_time
from captionflow.features.tiers.service import Feature, require_feature
from captionflow.models.caption import Platform, ScheduledStatus
from captionflow.models.user import User

router = APIRouter(tags=["scheduling"])


class SchedulePostRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    caption_id: str = Field(..., alias="captionId", min_length=1)
    scheduled_at: datetime = Field(..., alias="scheduledAt")
    publish_platforms: List[Platform] = Field(..., alias="publishPlatforms", min_length=1)


@router.post("/schedule-post")
def schedule_post_route(
    body: SchedulePostRequest,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    # A past time is a 400 for every tier, so it is checked before the gate
    validate_schedule_time(body.scheduled_at)
    require_feature(user, Feature.SCHEDULING)

    caption = schedule_caption(db, user.id, body.caption_id, body.scheduled_at, body.publish_platforms)
    return {
        "success": True,
        "scheduled": {
            "id": caption.id,
            "content": caption.content,
            "scheduledAt": caption.scheduled_at.isoformat(),
            "platforms": [p.value for p in caption.publish_platforms or []],
            "status": ScheduledStatus.SCHEDULED.value,
        },
    }


@router.get("/schedule-post")
def list_scheduled_route(
    status: ScheduledStatus = Query(ScheduledStatus.SCHEDULED),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    captions = list_scheduled(db, user_id, status)
    return {"success": True, "captions": [c.model_dump(mode="json") for c in captions]}
