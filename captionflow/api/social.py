"""
Social connection routes.

- GET    /api/social-connections
- DELETE /api/social-connections {connectionId}
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from captionflow.core.auth import get_current_user_id
from captionflow.core.database import Database, get_db
from captionflow.features.social.service import delete_connection, list_connections

router = APIRouter(tags=["social"])


class DisconnectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    connection_id: str = Field(..., alias="connectionId", min_length=1)


@router.get("/social-connections")
def list_connections_route(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    return {"connections": [c.model_dump(mode="json") for c in list_connections(db, user_id)]}


@router.delete("/social-connections")
def delete_connection_route(
    body: DisconnectRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    delete_connection(db, user_id, body.connection_id)
    return {"success": True}
