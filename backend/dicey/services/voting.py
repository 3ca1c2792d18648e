"""
Voting and resolution engine.

``submit_vote`` flips the voter's ``has_voted`` flag with a compare-and-set
UPDATE and increments the option tally in the same transaction, so a vote is
either fully counted or not at all. ``evaluate`` is a pure function over the
tallies; ``resolve`` is the one place that turns a clean winner into a
completed room. Ties wait for ``resolve_tie``.
"""

from __future__ import annotations

import random
import secrets
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, TypeVar, Union

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from dicey.core.logger import room_logger as logger
from dicey.db import transaction
from dicey.db_models import Option, Participant, Room, RoomStatus, TiebreakerKind
from dicey.errors import (
    AlreadyCompleted,
    AlreadyVoted,
    Forbidden,
    InvalidInput,
    NoTieToResolve,
    NotParticipant,
    OptionNotFound,
    SelfVoteForbidden,
    VotingNotActive,
)
from dicey.services import rooms
from dicey.services.lookups import (
    count_participants,
    find_participant,
    load_option,
    load_room,
    room_options,
)

T = TypeVar("T")

_system_random = secrets.SystemRandom()


# ---------------- Outcomes ----------------
@dataclass(frozen=True)
class Winner:
    option: Option
    kind: str = field(default="winner", init=False)


@dataclass(frozen=True)
class Tie:
    options: Tuple[Option, ...]
    kind: str = field(default="tie", init=False)


@dataclass(frozen=True)
class Undecided:
    kind: str = field(default="undecided", init=False)


Outcome = Union[Winner, Tie, Undecided]


def rank(options: Sequence[Option]) -> List[Option]:
    """Options by tally, highest first; equal tallies keep insertion order."""
    return sorted(options, key=lambda option: option.votes, reverse=True)


def evaluate(options: Sequence[Option]) -> Outcome:
    ranked = rank(options)
    if not ranked or ranked[0].votes <= 0:
        return Undecided()
    top = ranked[0].votes
    leaders = tuple(option for option in ranked if option.votes == top)
    if len(leaders) == 1:
        return Winner(leaders[0])
    return Tie(leaders)


def draw(candidates: Sequence[T], rng: Optional[random.Random] = None) -> T:
    """Pick one candidate uniformly at random."""
    if not candidates:
        raise ValueError("cannot draw from an empty set")
    rng = rng or _system_random
    return candidates[rng.randrange(len(candidates))]


# ---------------- Votes ----------------
def submit_vote(db: Session, room_id: int, option_id: int, voter_id: int) -> Option:
    with transaction(db, write=True):
        room = load_room(db, room_id)
        if room.status != RoomStatus.VOTING:
            raise VotingNotActive()
        option = load_option(db, option_id, room.id)
        if option.created_by == voter_id:
            raise SelfVoteForbidden()

        marked = db.execute(
            update(Participant)
            .where(
                Participant.room_id == room.id,
                Participant.user_id == voter_id,
                Participant.has_voted.is_(False),
            )
            .values(has_voted=True)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            if find_participant(db, room.id, voter_id) is None:
                raise NotParticipant()
            raise AlreadyVoted()

        voting_rooms = select(Room.id).where(Room.status == RoomStatus.VOTING)
        counted = db.execute(
            update(Option)
            .where(Option.id == option.id, Option.room_id.in_(voting_rooms))
            .values(votes=Option.votes + 1)
            .execution_options(synchronize_session=False)
        )
        if counted.rowcount != 1:
            # room left voting between the checks; roll the flag back with it
            raise VotingNotActive()
        option = load_option(db, option.id)
        everyone_voted = count_participants(db, room.id, pending_only=True) == 0
    logger.info(f"User {voter_id} voted for option {option.id} in room {room.code}")

    if everyone_voted:
        resolve(db, room.id)
    return option


def vote_status(db: Session, room_id: int, user_id: int) -> bool:
    with transaction(db):
        participant = find_participant(db, room_id, user_id)
    return bool(participant and participant.has_voted)


# ---------------- Resolution ----------------
def resolve(db: Session, room_id: int) -> Outcome:
    """Complete a voting room when it has a clean winner.

    Ties and rooms without votes stay in ``voting``. Losing the completion
    race to another caller is not an error.
    """
    with transaction(db, write=True):
        room = load_room(db, room_id)
        outcome = evaluate(room_options(db, room.id))
        if room.status != RoomStatus.VOTING or not isinstance(outcome, Winner):
            return outcome
        try:
            rooms.complete_room(db, room.id, outcome.option.text)
        except AlreadyCompleted:
            logger.info(f"Room {room.code} was completed concurrently")
    return outcome


@dataclass
class Results:
    room: Room
    options: List[Option]
    outcome: Outcome


def get_results(db: Session, room_id: int, requester_id: int) -> Results:
    """Ranked tallies for a room.

    While voting, the outcome is made final once everyone has voted, or when
    the creator asks (non-voters then count as abstaining).
    """
    with transaction(db, write=True):
        room = load_room(db, room_id)
        if room.status == RoomStatus.VOTING:
            all_in = count_participants(db, room.id, pending_only=True) == 0
            if all_in or room.creator_id == requester_id:
                resolve(db, room.id)
                room = load_room(db, room.id)
        options = room_options(db, room.id)
    return Results(room=room, options=rank(options), outcome=evaluate(options))


def resolve_tie(
    db: Session,
    room_id: int,
    tiebreaker: Union[TiebreakerKind, str],
    requester_id: int,
    option_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Room:
    """Break a tie among the top options and complete the room.

    The winner is drawn uniformly from the tied options. A client that ran the
    dice/spinner/coin ceremony itself may pass the ``option_id`` it landed on;
    it must be one of the tied options.
    """
    try:
        kind = TiebreakerKind(tiebreaker)
    except ValueError:
        raise InvalidInput("tiebreaker must be one of: dice, spinner, coin") from None

    with transaction(db, write=True):
        room = load_room(db, room_id, for_update=True)
        if room.creator_id != requester_id:
            raise Forbidden("Only the room creator can run the tiebreaker")
        if room.status == RoomStatus.COMPLETED:
            raise AlreadyCompleted()
        if room.status != RoomStatus.VOTING:
            raise VotingNotActive()

        outcome = evaluate(room_options(db, room.id))
        if not isinstance(outcome, Tie):
            raise NoTieToResolve()

        if option_id is not None:
            winner = next((o for o in outcome.options if o.id == option_id), None)
            if winner is None:
                raise OptionNotFound("Winning option is not among the tied options")
        else:
            winner = draw(outcome.options, rng)
        room = rooms.complete_room(db, room.id, winner.text, kind)
    logger.info(
        f"Tie in room {room.code} broken by {kind.value} among "
        f"{len(outcome.options)} options; winner={winner.id}"
    )
    return room


__all__ = [
    "Outcome",
    "Results",
    "Tie",
    "Undecided",
    "Winner",
    "draw",
    "evaluate",
    "get_results",
    "rank",
    "resolve",
    "resolve_tie",
    "submit_vote",
    "vote_status",
]
