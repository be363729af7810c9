import json
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from errors import MalformedMessage, UnknownMessageType


class JoinMessage(BaseModel):
    type: Literal["join"]
    # Presence is checked by the join handler so it can report the error
    roomId: Optional[str] = None
    username: Optional[str] = None


class StartPresentingMessage(BaseModel):
    type: Literal["start-presenting"]
    roomId: Optional[str] = None


class StopPresentingMessage(BaseModel):
    type: Literal["stop-presenting"]
    roomId: Optional[str] = None


class RelayMessage(BaseModel):
    # Negotiation payloads are opaque; unknown fields are relayed untouched
    model_config = ConfigDict(extra="allow")

    to: Optional[str] = None
    roomId: Optional[str] = None

    def relay_payload(self, sender_id: str) -> Dict[str, Any]:
        payload = self.model_dump(exclude={"to", "roomId"}, exclude_unset=True)
        payload["from"] = sender_id
        return payload


class OfferMessage(RelayMessage):
    type: Literal["offer"]
    offer: Any = None


class AnswerMessage(RelayMessage):
    type: Literal["answer"]
    answer: Any = None


class IceCandidateMessage(RelayMessage):
    type: Literal["ice-candidate"]
    candidate: Any = None


ClientMessage = Annotated[
    Union[
        JoinMessage,
        StartPresentingMessage,
        StopPresentingMessage,
        OfferMessage,
        AnswerMessage,
        IceCandidateMessage,
    ],
    Field(discriminator="type"),
]

CLIENT_MESSAGE_TYPES = frozenset(
    ["join", "start-presenting", "stop-presenting", "offer", "answer", "ice-candidate"]
)

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: Union[str, bytes]):
    """Decode one websocket frame into a client message model.

    Raises UnknownMessageType for a well-formed envelope with an unrecognized
    type and MalformedMessage for anything else that can't be used.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedMessage(f"Invalid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise MalformedMessage("Message must be a JSON object")

    message_type = raw.get("type")
    if not isinstance(message_type, str):
        raise MalformedMessage("Message is missing a string 'type'")
    if message_type not in CLIENT_MESSAGE_TYPES:
        raise UnknownMessageType(message_type)

    try:
        return _client_message_adapter.validate_python(raw)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid {message_type} message: {e.error_count()} error(s)") from e


# Server -> client messages


class MemberInfo(BaseModel):
    userId: str
    username: str
    isPresenter: bool


class JoinedMessage(BaseModel):
    type: Literal["joined"] = "joined"
    roomId: str
    userId: str
    users: list[MemberInfo]


class UserJoinedMessage(BaseModel):
    type: Literal["user-joined"] = "user-joined"
    userId: str
    username: str
    users: list[MemberInfo]


class UserLeftMessage(BaseModel):
    type: Literal["user-left"] = "user-left"
    userId: str
    username: str
    users: list[MemberInfo]


class PresenterStartedMessage(BaseModel):
    type: Literal["presenter-started"] = "presenter-started"
    presenterId: str
    presenterName: str


class PresenterStoppedMessage(BaseModel):
    type: Literal["presenter-stopped"] = "presenter-stopped"
    presenterId: str


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    message: str
