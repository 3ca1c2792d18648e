from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dicey.db import get_db
from dicey.db_models import RoomStatus
from dicey.models import (
    Ack,
    CreateRoomPayload,
    JoinRoomPayload,
    OptionOut,
    ParticipantOut,
    RoomDetails,
    RoomList,
    RoomOut,
    RoomRef,
)
from dicey.security import get_current_user_id
from dicey.services import options, participants, rooms

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.post("", response_model=RoomRef, status_code=status.HTTP_201_CREATED)
def create_room(
    payload: CreateRoomPayload,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> RoomRef:
    room = rooms.create_room(
        db,
        payload.title,
        user_id,
        description=payload.description,
        max_participants=payload.max_participants,
    )
    return RoomRef(room_id=room.id, room_code=room.code)


@router.post("/join", response_model=RoomRef)
def join_room(
    payload: JoinRoomPayload,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> RoomRef:
    room = rooms.join_room_by_code(db, payload.code, user_id)
    return RoomRef(room_id=room.id, room_code=room.code)


@router.get("", response_model=RoomList)
def list_rooms(
    status: Optional[RoomStatus] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> RoomList:
    found = rooms.list_user_rooms(db, user_id, status=status)
    return RoomList(rooms=[RoomOut.model_validate(room) for room in found])


@router.get("/{code}", response_model=RoomDetails)
def room_details(
    code: str,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> RoomDetails:
    room = rooms.get_room_by_code(db, code)
    return RoomDetails(
        room=RoomOut.model_validate(room),
        options=[OptionOut.model_validate(o) for o in options.list_options(db, room.id)],
        participants=[ParticipantOut.model_validate(p) for p in participants.list_participants(db, room.id)],
        is_creator=room.creator_id == user_id,
        current_user_id=user_id,
    )


@router.post("/{code}/start-voting", response_model=Ack)
def start_voting(
    code: str,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Ack:
    rooms.advance_to_voting(db, code, user_id)
    return Ack()
