from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_identity
from app.core.database import get_db
from app.schemas.user import FollowResponse, LikeResponse
from app.services.engagement import follow_engine, like_engine
from app.services.sessions import SessionIdentity

router = APIRouter(tags=["engagement"])


@router.post("/tracks/{track_id}/like", response_model=LikeResponse)
def toggle_like(
    track_id: int,
    identity: Annotated[SessionIdentity, Depends(require_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> LikeResponse:
    """Like the track, or remove the like if it is already there."""
    return LikeResponse(liked=like_engine(db).toggle(identity.account_id, track_id))


@router.post("/users/{user_id}/follow", response_model=FollowResponse)
def toggle_follow(
    user_id: int,
    identity: Annotated[SessionIdentity, Depends(require_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> FollowResponse:
    """Follow the user, or unfollow if already following."""
    return FollowResponse(following=follow_engine(db).toggle(identity.account_id, user_id))
