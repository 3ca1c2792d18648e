"""Option ledger: candidate choices, editable only while a room is in the lobby."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from dicey.core.logger import room_logger as logger
from dicey.db import transaction
from dicey.db_models import Option, Room, RoomStatus
from dicey.errors import Forbidden, InvalidInput, RoomNotInLobby
from dicey.services.lookups import load_option, load_room, require_user, room_options

MAX_OPTION_LENGTH = 500


def add_option(db: Session, room_id: int, text: str, creator_id: int) -> Option:
    text = (text or "").strip()
    if not text:
        raise InvalidInput("Option text is required")
    if len(text) > MAX_OPTION_LENGTH:
        raise InvalidInput(f"Option text must be at most {MAX_OPTION_LENGTH} characters")

    with transaction(db, write=True):
        require_user(db, creator_id)
        room = load_room(db, room_id, for_update=True)
        if room.status != RoomStatus.LOBBY:
            raise RoomNotInLobby("Cannot add options after voting has started")
        option = Option(room_id=room.id, text=text, created_by=creator_id, votes=0)
        db.add(option)
        db.flush()
    logger.info(f"Option {option.id} added to room {room.code} by user {creator_id}")
    return option


def remove_option(db: Session, option_id: int, requester_id: int, room_id: Optional[int] = None) -> None:
    """Delete an option. Only its author may, and only while the room is in the lobby."""
    with transaction(db, write=True):
        option = load_option(db, option_id, room_id)
        room = load_room(db, option.room_id, for_update=True)
        if option.created_by != requester_id:
            raise Forbidden("Only the author of an option can remove it")
        if room.status != RoomStatus.LOBBY:
            raise RoomNotInLobby("Cannot remove options after voting has started")

        lobby_rooms = select(Room.id).where(Room.status == RoomStatus.LOBBY)
        result = db.execute(
            delete(Option)
            .where(
                Option.id == option.id,
                Option.created_by == requester_id,
                Option.room_id.in_(lobby_rooms),
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise RoomNotInLobby("Cannot remove options after voting has started")
    logger.info(f"Option {option_id} removed from room {room.code} by user {requester_id}")


def list_options(db: Session, room_id: int) -> List[Option]:
    """Options of the room in insertion order."""
    with transaction(db):
        return room_options(db, room_id)


__all__ = ["MAX_OPTION_LENGTH", "add_option", "list_options", "remove_option"]
