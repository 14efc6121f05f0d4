# models/schemas.py
import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Action(str, Enum):
    # Inbound
    CREATE_SESSION = "create_session"
    JOIN_SESSION = "join_session"
    OFFER = "offer"
    ANSWER = "answer"
    CANDIDATE = "candidate"
    # Outbound only
    SESSION_CREATED = "session_created"
    PEER_JOINED = "peer_joined"
    ERROR = "error"


class WireMessage(BaseModel):
    """Raw inbound frame, before the action is interpreted"""
    model_config = ConfigDict(extra="ignore")

    action: str = ""
    session_id: str = ""
    candidate: str = ""
    target: str = ""
    sdp: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class SignalMessage(BaseModel):
    """Outbound message written by the server"""
    model_config = ConfigDict(frozen=True)

    action: Action
    session_id: str = ""
    candidate: str = ""
    target: str = ""
    sdp: str = ""

    def to_wire(self) -> Dict[str, str]:
        # candidate and sdp are omitted when empty
        payload = {
            "action": self.action.value,
            "session_id": self.session_id,
            "candidate": self.candidate,
            "target": self.target,
            "sdp": self.sdp,
        }
        for key in ("candidate", "sdp"):
            if not payload[key]:
                del payload[key]
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


# HTTP models
class HealthResponse(BaseModel):
    status: str
    active_sessions: int
    environment: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    available_endpoints: Optional[List[str]] = None
