"""
Typed failures raised by the decision-room services.

Every error carries an HTTP status and a snake_case ``code``; the API turns
them into ``{"success": false, "error": code, "message": message}`` bodies.
"""

from __future__ import annotations

from typing import Optional


class DecisionError(Exception):
    status_code = 400
    code = "decision_error"
    message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ---- taxonomy ----
class NotFound(DecisionError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class Forbidden(DecisionError):
    status_code = 403
    code = "forbidden"
    message = "You are not allowed to do that"


class InvalidState(DecisionError):
    status_code = 409
    code = "invalid_state"
    message = "Room is not in the right phase for that"


class Conflict(DecisionError):
    status_code = 409
    code = "conflict"
    message = "Conflicting request"


class InvalidInput(DecisionError):
    status_code = 422
    code = "invalid_input"
    message = "Invalid input"


class InvalidCredentials(DecisionError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid email or password"


# ---- not found ----
class RoomNotFound(NotFound):
    code = "room_not_found"
    message = "Room not found"


class UserNotFound(NotFound):
    code = "user_not_found"
    message = "User not found"


class OptionNotFound(NotFound):
    code = "option_not_found"
    message = "Option not found"


# ---- forbidden ----
class SelfVoteForbidden(Forbidden):
    code = "self_vote_forbidden"
    message = "You cannot vote for your own option"


class NotParticipant(Forbidden):
    code = "not_participant"
    message = "Join the room before voting"


# ---- invalid state ----
class RoomNotInLobby(InvalidState):
    code = "room_not_in_lobby"
    message = "Options can only be changed before voting starts"


class VotingNotActive(InvalidState):
    code = "voting_not_active"
    message = "Voting is not active for this room"


class InsufficientOptions(InvalidState):
    code = "insufficient_options"
    message = "At least 2 options are required to start voting"


class InvalidTransition(InvalidState):
    code = "invalid_transition"
    message = "Room has already left that phase"


class NoTieToResolve(InvalidState):
    code = "no_tie_to_resolve"
    message = "There is no tie to break"


# ---- conflict ----
class DuplicateIdentity(Conflict):
    code = "duplicate_identity"
    message = "An account with that email already exists"


class AlreadyVoted(Conflict):
    code = "already_voted"
    message = "You have already voted in this room"


class AlreadyCompleted(Conflict):
    code = "already_completed"
    message = "Room has already been decided"


class RoomFull(Conflict):
    code = "room_full"
    message = "Room has reached its participant limit"


__all__ = [
    "AlreadyCompleted",
    "AlreadyVoted",
    "Conflict",
    "DecisionError",
    "DuplicateIdentity",
    "Forbidden",
    "InsufficientOptions",
    "InvalidCredentials",
    "InvalidInput",
    "InvalidState",
    "InvalidTransition",
    "NoTieToResolve",
    "NotFound",
    "NotParticipant",
    "OptionNotFound",
    "RoomFull",
    "RoomNotFound",
    "RoomNotInLobby",
    "SelfVoteForbidden",
    "UserNotFound",
    "VotingNotActive",
]
