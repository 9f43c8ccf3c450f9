"""Public waitlist route (no auth)."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from captionflow.core.database import Database, get_db
from captionflow.features.waitlist.service import join_waitlist

router = APIRouter(tags=["waitlist"])


class WaitlistRequest(BaseModel):
    email: EmailStr
    handle: str = Field(..., min_length=1, max_length=200)
    platform: str = Field(..., min_length=1, max_length=50)


@router.post("/waitlist", status_code=201)
def join_waitlist_route(body: WaitlistRequest, db: Database = Depends(get_db)):
    join_waitlist(db, body.email, body.handle, body.platform)
    return {"message": "Successfully joined the waitlist!"}
