"""Participant roster: who joined a room and whether they have voted."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dicey.core.logger import room_logger as logger
from dicey.db import transaction
from dicey.db_models import Participant, User
from dicey.errors import RoomFull
from dicey.services.lookups import count_participants, find_participant, load_room, require_user

UNKNOWN_USER_NAME = "Unknown User"


@dataclass
class RosterEntry:
    id: int
    room_id: int
    user_id: int
    name: str
    has_voted: bool
    joined_at: Optional[datetime]


def join(db: Session, room_id: int, user_id: int) -> Participant:
    """Add ``user_id`` to the room, or return the existing record unchanged."""
    try:
        with transaction(db, write=True):
            require_user(db, user_id)
            room = load_room(db, room_id, for_update=True)
            existing = find_participant(db, room.id, user_id)
            if existing is not None:
                return existing
            if room.max_participants is not None and count_participants(db, room.id) >= room.max_participants:
                raise RoomFull()
            participant = Participant(room_id=room.id, user_id=user_id, has_voted=False)
            db.add(participant)
            db.flush()
            db.refresh(participant)
    except IntegrityError:
        # concurrent join for the same (room, user) won the insert
        with transaction(db):
            existing = find_participant(db, room_id, user_id)
        if existing is None:
            raise
        return existing
    logger.info(f"User {user_id} joined room {room_id}")
    return participant


def get_participant(db: Session, room_id: int, user_id: int) -> Optional[Participant]:
    with transaction(db):
        return find_participant(db, room_id, user_id)


def list_participants(db: Session, room_id: int) -> List[RosterEntry]:
    stmt = (
        select(Participant, User.name)
        .outerjoin(User, User.id == Participant.user_id)
        .where(Participant.room_id == room_id)
        .order_by(Participant.id)
        .execution_options(populate_existing=True)
    )
    with transaction(db):
        rows = db.execute(stmt).all()
    return [
        RosterEntry(
            id=participant.id,
            room_id=participant.room_id,
            user_id=participant.user_id,
            name=name or UNKNOWN_USER_NAME,
            has_voted=participant.has_voted,
            joined_at=participant.joined_at,
        )
        for participant, name in rows
    ]


__all__ = ["RosterEntry", "UNKNOWN_USER_NAME", "get_participant", "join", "list_participants"]
