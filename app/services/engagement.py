import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.engagement import Follow, Like
from app.models.track import Track
from app.models.user import User
from app.services.errors import NotFoundError, UnauthenticatedError

logger = logging.getLogger(__name__)


class ToggleEngine:
    """Flip a directed actor -> target relation and report the new state.

    The relation row is deleted first; if nothing was deleted it is created.
    Both steps run in one transaction and the pair is guarded by a unique
    constraint, so when a concurrent toggle inserts the same row first the
    losing insert is rolled back and reported as ``True``: the relation
    exists, and only once.
    """

    def __init__(self, db: Session, model, actor_field: str, target_field: str, target_model, target_name: str):
        self.db = db
        self.model = model
        self.actor_field = actor_field
        self.target_field = target_field
        self.target_model = target_model
        self.target_name = target_name

    def _relation_query(self, actor_id: int, target_id: int):
        return self.db.query(self.model).filter(
            getattr(self.model, self.actor_field) == actor_id,
            getattr(self.model, self.target_field) == target_id,
        )

    def _delete_relation(self, actor_id: int, target_id: int) -> int:
        return self._relation_query(actor_id, target_id).delete(synchronize_session=False)

    def exists(self, actor_id: int, target_id: int) -> bool:
        return self._relation_query(actor_id, target_id).first() is not None

    def toggle(self, actor_id: Optional[int], target_id: int) -> bool:
        if actor_id is None:
            raise UnauthenticatedError()

        target = (
            self.db.query(self.target_model.id)
            .filter(self.target_model.id == target_id)
            .first()
        )
        if target is None:
            raise NotFoundError(f"{self.target_name} not found")

        if self._delete_relation(actor_id, target_id):
            self.db.commit()
            return False

        self.db.add(self.model(**{self.actor_field: actor_id, self.target_field: target_id}))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if not self.exists(actor_id, target_id):
                # a signed credential can outlive its account
                actor = self.db.query(User.id).filter(User.id == actor_id).first()
                if actor is None:
                    raise UnauthenticatedError()
                raise
            logger.debug(
                "Concurrent toggle already created %s %s->%s",
                self.model.__tablename__, actor_id, target_id,
            )
        return True


def like_engine(db: Session) -> ToggleEngine:
    return ToggleEngine(db, Like, "user_id", "track_id", Track, "Track")


def follow_engine(db: Session) -> ToggleEngine:
    return ToggleEngine(db, Follow, "follower_id", "following_id", User, "User")
