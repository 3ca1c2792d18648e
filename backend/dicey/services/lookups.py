"""Shared row loaders used by the room, option, roster and voting services.

Loaders always refresh from the database (``populate_existing``) so a
long-lived session never decides on a stale status or tally. ``for_update``
locks the room row on backends that support ``SELECT ... FOR UPDATE``; SQLite
already serializes writers with ``BEGIN IMMEDIATE``.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dicey.db_models import Option, Participant, Room, User
from dicey.errors import OptionNotFound, RoomNotFound, UserNotFound


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def require_user(db: Session, user_id: int) -> None:
    if db.get(User, user_id, populate_existing=True) is None:
        raise UserNotFound()


def load_room(db: Session, room_id: int, *, for_update: bool = False) -> Room:
    stmt = select(Room).where(Room.id == room_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    room = db.execute(stmt).scalars().first()
    if room is None:
        raise RoomNotFound()
    return room


def load_room_by_code(db: Session, code: str, *, for_update: bool = False) -> Room:
    stmt = select(Room).where(Room.code == normalize_code(code)).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    room = db.execute(stmt).scalars().first()
    if room is None:
        raise RoomNotFound()
    return room


def load_option(db: Session, option_id: int, room_id: Optional[int] = None) -> Option:
    stmt = select(Option).where(Option.id == option_id).execution_options(populate_existing=True)
    option = db.execute(stmt).scalars().first()
    if option is None or (room_id is not None and option.room_id != room_id):
        raise OptionNotFound()
    return option


def room_options(db: Session, room_id: int) -> list[Option]:
    stmt = (
        select(Option)
        .where(Option.room_id == room_id)
        .order_by(Option.id)
        .execution_options(populate_existing=True)
    )
    return list(db.execute(stmt).scalars().all())


def find_participant(db: Session, room_id: int, user_id: int) -> Optional[Participant]:
    stmt = (
        select(Participant)
        .where(Participant.room_id == room_id, Participant.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalars().first()


def count_participants(db: Session, room_id: int, *, pending_only: bool = False) -> int:
    stmt = select(func.count(Participant.id)).where(Participant.room_id == room_id)
    if pending_only:
        stmt = stmt.where(Participant.has_voted.is_(False))
    return int(db.execute(stmt).scalar_one())


def count_options(db: Session, room_id: int) -> int:
    stmt = select(func.count(Option.id)).where(Option.room_id == room_id)
    return int(db.execute(stmt).scalar_one())
