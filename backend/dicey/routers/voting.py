from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dicey.db import get_db
from dicey.models import (
    Ack,
    OptionOut,
    OutcomeOut,
    ResultsResponse,
    RoomOut,
    RoomResponse,
    TiebreakerPayload,
    VotePayload,
    VoteStatus,
)
from dicey.security import get_current_user_id
from dicey.services import rooms, voting

router = APIRouter(prefix="/rooms/{code}", tags=["voting"])


def _outcome_out(outcome: voting.Outcome) -> OutcomeOut:
    if isinstance(outcome, voting.Winner):
        return OutcomeOut(kind="winner", winner_option_id=outcome.option.id)
    if isinstance(outcome, voting.Tie):
        return OutcomeOut(kind="tie", tied_option_ids=[o.id for o in outcome.options])
    return OutcomeOut(kind="undecided")


@router.post("/vote", response_model=Ack)
def cast_vote(
    code: str,
    payload: VotePayload,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Ack:
    room = rooms.get_room_by_code(db, code)
    voting.submit_vote(db, room.id, payload.option_id, user_id)
    return Ack()


@router.get("/vote/status", response_model=VoteStatus)
def vote_status(
    code: str,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> VoteStatus:
    room = rooms.get_room_by_code(db, code)
    return VoteStatus(already_voted=voting.vote_status(db, room.id, user_id))


@router.get("/results", response_model=ResultsResponse)
def results(
    code: str,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ResultsResponse:
    room = rooms.get_room_by_code(db, code)
    outcome = voting.get_results(db, room.id, user_id)
    return ResultsResponse(
        room=RoomOut.model_validate(outcome.room),
        options=[OptionOut.model_validate(o) for o in outcome.options],
        outcome=_outcome_out(outcome.outcome),
        is_creator=outcome.room.creator_id == user_id,
    )


@router.post("/tiebreaker", response_model=RoomResponse)
def run_tiebreaker(
    code: str,
    payload: TiebreakerPayload,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> RoomResponse:
    room = rooms.get_room_by_code(db, code)
    room = voting.resolve_tie(db, room.id, payload.tiebreaker, user_id, option_id=payload.option_id)
    return RoomResponse(room=RoomOut.model_validate(room))
