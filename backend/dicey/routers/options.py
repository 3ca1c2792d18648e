from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dicey.db import get_db
from dicey.models import Ack, AddOptionPayload, OptionOut, OptionResponse
from dicey.security import get_current_user_id
from dicey.services import options, rooms

router = APIRouter(prefix="/rooms/{code}/options", tags=["options"])


@router.post("", response_model=OptionResponse, status_code=status.HTTP_201_CREATED)
def add_option(
    code: str,
    payload: AddOptionPayload,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> OptionResponse:
    room = rooms.get_room_by_code(db, code)
    option = options.add_option(db, room.id, payload.text, user_id)
    return OptionResponse(option=OptionOut.model_validate(option))


# DELETE is rejected by the HTTP hardening middleware, so removal is a POST
@router.post("/{option_id}/remove", response_model=Ack)
def remove_option(
    code: str,
    option_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Ack:
    room = rooms.get_room_by_code(db, code)
    options.remove_option(db, option_id, user_id, room_id=room.id)
    return Ack()
