from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from dicey.db_models import RoomStatus, TiebreakerKind


# ---------------- Auth ----------------
class SignupPayload(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)

    @field_validator("name")
    @classmethod
    def _name_rules(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("name must not be blank")
        return v2

    @field_validator("password")
    @classmethod
    def _password_rules(cls, v: str) -> str:
        if any(ord(ch) < 32 for ch in v):
            raise ValueError("password contains control characters")
        if v.strip() != v:
            raise ValueError("password must not have surrounding spaces")
        return v


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr


class SessionResponse(BaseModel):
    success: bool = True
    user_id: int


# ---------------- Rooms ----------------
class CreateRoomPayload(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    max_participants: Optional[int] = Field(default=None, ge=1, le=1000)


class JoinRoomPayload(BaseModel):
    code: str = Field(min_length=1, max_length=16)


class RoomRef(BaseModel):
    success: bool = True
    room_id: int
    room_code: str


class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    title: str
    description: Optional[str] = None
    max_participants: Optional[int] = None
    creator_id: int
    status: RoomStatus
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    tiebreaker: Optional[TiebreakerKind] = None
    final_decision: Optional[str] = None


class RoomList(BaseModel):
    success: bool = True
    rooms: List[RoomOut]


class OptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    text: str
    created_by: int
    votes: int


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    has_voted: bool
    joined_at: Optional[datetime] = None


class RoomDetails(BaseModel):
    success: bool = True
    room: RoomOut
    options: List[OptionOut]
    participants: List[ParticipantOut]
    is_creator: bool
    current_user_id: int


class RoomResponse(BaseModel):
    success: bool = True
    room: RoomOut


# ---------------- Options ----------------
class AddOptionPayload(BaseModel):
    text: str = Field(min_length=1, max_length=500)


class OptionResponse(BaseModel):
    success: bool = True
    option: OptionOut


# ---------------- Voting ----------------
class VotePayload(BaseModel):
    option_id: int


class VoteStatus(BaseModel):
    already_voted: bool


class TiebreakerPayload(BaseModel):
    tiebreaker: TiebreakerKind
    option_id: Optional[int] = None


class OutcomeOut(BaseModel):
    kind: Literal["winner", "tie", "undecided"]
    winner_option_id: Optional[int] = None
    tied_option_ids: List[int] = Field(default_factory=list)


class ResultsResponse(BaseModel):
    success: bool = True
    room: RoomOut
    options: List[OptionOut]
    outcome: OutcomeOut
    is_creator: bool


class Ack(BaseModel):
    success: bool = True
