"""
Pydantic schemas: inbound bot events, render instructions for the
messenger transport, REST payloads and the whole-store snapshot.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_user_id(value):
    """Transport ids arrive as numbers or strings; they are stored as strings."""
    if value is None:
        return None
    return str(value)


class EventType(str, Enum):
    """Kinds of inbound user actions."""

    COMMAND = "command"
    CALLBACK = "callback"
    MESSAGE = "message"


class InboundEvent(BaseModel):
    """One user action forwarded by the messenger transport."""

    type: EventType = Field(..., description="command, callback or message")
    user_id: str = Field(..., description="Sender id on the messenger platform")
    display_name: str = Field("", description="Sender display name at the time of the event")
    text: Optional[str] = Field(None, description="Command name or free text")
    payload: Optional[str] = Field(None, description="Inline button payload")

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id_as_string(cls, value):
        return _as_user_id(value)

    class Config:
        json_schema_extra = {
            "example": {
                "type": "callback",
                "user_id": 123456,
                "display_name": "Анна",
                "payload": "category_help_children_CAO"
            }
        }


class Button(BaseModel):
    label: str
    payload: str


class OutgoingMessage(BaseModel):
    text: str
    keyboard: List[List[Button]] = Field(default_factory=list)


class BotReply(BaseModel):
    """Render instructions consumed by the messenger transport."""

    messages: List[OutgoingMessage] = Field(default_factory=list)


class HelpRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    author_id: str
    author_name: str
    problem: str
    category: str
    region: str
    address: Optional[str] = None
    created_at: datetime
    rating: int
    reserved: bool = False
    phone: Optional[str] = Field(None, description="Disclosed only to the author and the responder")

    @classmethod
    def from_request(cls, request, disclose_phone: bool = False) -> "HelpRequestOut":
        return cls(
            id=request.id,
            author_id=request.author_id,
            author_name=request.author_name,
            problem=request.problem,
            category=request.category,
            region=request.region,
            address=request.address,
            created_at=request.created_at,
            rating=request.rating,
            reserved=request.reserved_by is not None,
            phone=request.phone if disclose_phone else None,
        )


class ResponseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    responder_id: str
    request_id: int
    created_at: datetime
    active: bool


class ResponseViewOut(BaseModel):
    response: ResponseOut
    request: Optional[HelpRequestOut] = Field(None, description="None when the request was deleted")


class ActionResult(BaseModel):
    success: bool
    message: str


# ============================================================================
# SNAPSHOT (legacy data.json layout)
# ============================================================================

class SnapshotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    author_id: str = Field(..., alias="user_id")
    author_name: str = Field("", alias="first_name")
    problem: str
    phone: str
    category: str
    region: str = Field(..., alias="district")
    address: Optional[str] = None
    timestamp: int = Field(..., description="Creation time, milliseconds since epoch")
    rating: int = 0
    active: bool = True
    reserved_by: Optional[str] = Field(None, alias="reserved")

    @field_validator("author_id", "reserved_by", mode="before")
    @classmethod
    def _ids_as_strings(cls, value):
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("address", mode="before")
    @classmethod
    def _blank_address_as_none(cls, value):
        if value is None or not str(value).strip():
            return None
        return value


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    responder_id: str = Field(..., alias="user_id")
    request_id: int
    timestamp: int
    active: bool = True

    @field_validator("responder_id", mode="before")
    @classmethod
    def _responder_as_string(cls, value):
        return _as_user_id(value)


class Snapshot(BaseModel):
    """Whole-store contents: requests, responses and accepted agreements."""

    model_config = ConfigDict(populate_by_name=True)

    requests: List[SnapshotRequest] = Field(default_factory=list)
    responses: List[SnapshotResponse] = Field(default_factory=list)
    accepted_user_ids: List[str] = Field(default_factory=list, alias="acceptedUsers")

    @field_validator("accepted_user_ids", mode="before")
    @classmethod
    def _accepted_as_strings(cls, value):
        return [str(v) for v in value or []]
