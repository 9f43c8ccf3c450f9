"""Beta signup (public) and the admin listing."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr

from captionflow.core.auth import require_admin_key
from captionflow.core.database import Database, get_db
from captionflow.features.beta.service import join_beta, list_beta_signups

router = APIRouter(prefix="/beta", tags=["beta"])


class BetaSignupRequest(BaseModel):
    email: EmailStr


@router.post("")
def join_beta_route(body: BetaSignupRequest, db: Database = Depends(get_db)):
    join_beta(db, body.email)
    return {"success": True, "message": "Beta invite sent! Check your email."}


@router.get("", dependencies=[Depends(require_admin_key)])
def list_beta_route(db: Database = Depends(get_db)):
    return {"success": True, "signups": list_beta_signups(db)}
