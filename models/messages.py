"""
Inbound signaling messages.

Every frame a peer sends is decoded into exactly one of the variant models
below. Frames that are not a JSON object of string fields raise
``MessageDecodeError``; well-formed frames whose action the relay does not
understand become ``UnknownAction`` so the caller can tell the two apart.
"""
from typing import Dict, Type, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from models.schemas import Action, WireMessage


class MessageDecodeError(ValueError):
    """Raised when an inbound frame cannot be read as a signaling message"""


class _Inbound(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class CreateSession(_Inbound):
    pass


class JoinSession(_Inbound):
    target: str


class Offer(_Inbound):
    target: str
    sdp: str


class Answer(_Inbound):
    target: str
    sdp: str


class Candidate(_Inbound):
    target: str
    candidate: str


class UnknownAction(_Inbound):
    action: str


InboundMessage = Union[CreateSession, JoinSession, Offer, Answer, Candidate]

INBOUND_TYPES: Dict[Action, Type[_Inbound]] = {
    Action.CREATE_SESSION: CreateSession,
    Action.JOIN_SESSION: JoinSession,
    Action.OFFER: Offer,
    Action.ANSWER: Answer,
    Action.CANDIDATE: Candidate,
}

_INBOUND_BY_NAME = {action.value: model for action, model in INBOUND_TYPES.items()}


def decode_message(raw: Union[str, bytes]) -> Union[InboundMessage, UnknownAction]:
    try:
        wire = WireMessage.model_validate_json(raw)
    except ValidationError as e:
        raise MessageDecodeError(f"Malformed signaling frame: {e.error_count()} error(s)") from e
    except ValueError as e:
        raise MessageDecodeError(f"Unreadable signaling frame: {e}") from e

    model = _INBOUND_BY_NAME.get(wire.action)
    if model is None:
        return UnknownAction(action=wire.action)
    # session_id is never trusted from the client, so it is not carried over
    return model.model_validate(wire.model_dump(exclude={"action", "session_id"}))
