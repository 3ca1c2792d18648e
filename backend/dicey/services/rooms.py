"""
Room registry.

Creates rooms under unique short codes and owns the status transitions
``lobby -> voting -> completed``. Each transition is a conditional UPDATE on
the current status, so concurrent callers get exactly one success and typed
failures for the rest.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dicey.core.logger import room_logger as logger
from dicey.core.settings import get_settings
from dicey.db import transaction
from dicey.db_models import Participant, Room, RoomStatus, TiebreakerKind
from dicey.errors import (
    AlreadyCompleted,
    Conflict,
    Forbidden,
    InsufficientOptions,
    InvalidInput,
    InvalidTransition,
    VotingNotActive,
)
from dicey.services import participants
from dicey.services.lookups import count_options, load_room, load_room_by_code, require_user

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6

_rng = secrets.SystemRandom()


def generate_room_code() -> str:
    return "".join(_rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _code_taken(db: Session, code: str) -> bool:
    with transaction(db):
        return db.execute(select(Room.id).where(Room.code == code)).first() is not None


def create_room(
    db: Session,
    title: str,
    creator_id: int,
    description: Optional[str] = None,
    max_participants: Optional[int] = None,
    *,
    code_factory=generate_room_code,
) -> Room:
    """Create a room in ``lobby`` and join its creator as first participant."""
    title = _clean_text(title)
    if not title:
        raise InvalidInput("Room title is required")
    if max_participants is not None and max_participants < 1:
        raise InvalidInput("max_participants must be at least 1")

    attempts = max(1, get_settings().room_code_attempts)
    for attempt in range(1, attempts + 1):
        code = code_factory()
        try:
            with transaction(db, write=True):
                require_user(db, creator_id)
                room = Room(
                    code=code,
                    title=title,
                    description=_clean_text(description),
                    max_participants=max_participants,
                    creator_id=creator_id,
                    status=RoomStatus.LOBBY,
                )
                db.add(room)
                db.flush()
                participants.join(db, room.id, creator_id)
                db.refresh(room)
        except IntegrityError:
            if not _code_taken(db, code):
                raise
            logger.warning(f"Room code collision on {code} (attempt {attempt}/{attempts})")
            continue
        logger.info(f"Room {room.code} created by user {creator_id} title={title!r}")
        return room
    raise Conflict("Could not allocate a unique room code")


def get_room_by_code(db: Session, code: str) -> Room:
    with transaction(db):
        return load_room_by_code(db, code)


def get_room(db: Session, room_id: int) -> Room:
    with transaction(db):
        return load_room(db, room_id)


def join_room_by_code(db: Session, code: str, user_id: int) -> Room:
    with transaction(db, write=True):
        room = load_room_by_code(db, code)
        participants.join(db, room.id, user_id)
    return room


def list_user_rooms(db: Session, user_id: int, status: Optional[RoomStatus] = None) -> List[Room]:
    """Rooms the user created or joined, newest first."""
    joined = select(Participant.room_id).where(Participant.user_id == user_id)
    stmt = select(Room).where(or_(Room.creator_id == user_id, Room.id.in_(joined)))
    if status is not None:
        stmt = stmt.where(Room.status == status)
    stmt = stmt.order_by(Room.id.desc()).execution_options(populate_existing=True)
    with transaction(db):
        return list(db.execute(stmt).scalars().all())


def advance_to_voting(db: Session, room_code: str, requester_id: int) -> Room:
    with transaction(db, write=True):
        room = load_room_by_code(db, room_code, for_update=True)
        if room.creator_id != requester_id:
            raise Forbidden("Only the room creator can start voting")
        if room.status != RoomStatus.LOBBY:
            raise InvalidTransition("Voting has already started for this room")
        if count_options(db, room.id) < 2:
            raise InsufficientOptions()

        result = db.execute(
            update(Room)
            .where(Room.id == room.id, Room.status == RoomStatus.LOBBY)
            .values(status=RoomStatus.VOTING)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransition("Voting has already started for this room")
        room = load_room(db, room.id)
    logger.info(f"Voting started in room {room.code} by user {requester_id}")
    return room


def complete_room(
    db: Session,
    room_id: int,
    final_decision: str,
    tiebreaker: Optional[TiebreakerKind] = None,
) -> Room:
    """Record the final decision. Only the first of concurrent callers wins."""
    with transaction(db, write=True):
        result = db.execute(
            update(Room)
            .where(Room.id == room_id, Room.status == RoomStatus.VOTING)
            .values(
                status=RoomStatus.COMPLETED,
                final_decision=final_decision,
                tiebreaker=tiebreaker,
                resolved_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        room = load_room(db, room_id)
        if result.rowcount != 1:
            if room.status == RoomStatus.COMPLETED:
                raise AlreadyCompleted()
            raise VotingNotActive()
    label = tiebreaker.value if tiebreaker else "none"
    logger.info(f"Room {room.code} completed: decision={final_decision!r} tiebreaker={label}")
    return room


__all__ = [
    "ROOM_CODE_ALPHABET",
    "ROOM_CODE_LENGTH",
    "advance_to_voting",
    "complete_room",
    "create_room",
    "generate_room_code",
    "get_room",
    "get_room_by_code",
    "join_room_by_code",
    "list_user_rooms",
]
