"""Event repository."""

from sqlalchemy.orm import Session

from ..models.event import Event
from .base_repository import BaseRepository


class EventRepository(BaseRepository[Event]):
    def __init__(self, db: Session):
        super().__init__(db, Event)
