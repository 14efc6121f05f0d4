import logging
from typing import Awaitable, Callable, Dict, Optional, Type, Union

from models.messages import (
    Answer,
    Candidate,
    CreateSession,
    InboundMessage,
    JoinSession,
    Offer,
    UnknownAction,
)
from models.schemas import Action, SignalMessage
from registry import Connection, ConnectionRegistry, SendResult

logger = logging.getLogger(__name__)

JOIN_TARGET_NOT_FOUND = "File not found, please try again later."
OFFER_TARGET_NOT_FOUND = "Peer not found, Please try again later."
ANSWER_TARGET_NOT_FOUND = "Error connecting to peer"
CANDIDATE_TARGET_NOT_FOUND = "Error connecting to peer"


class MessageRouter:
    """
    Relays one decoded inbound message on behalf of its sender.

    The router only reads the registry. Errors are always sent back to the
    sender, and every relayed message carries the sender's own session id
    whatever the client put in the frame.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        self._handlers: Dict[Type, Callable[[Connection, InboundMessage], Awaitable[None]]] = {
            CreateSession: self._send_session_created,
            JoinSession: self._handle_session_join,
            Offer: self._forward_offer,
            Answer: self._forward_answer,
            Candidate: self._forward_candidate,
        }

    async def dispatch(self, sender: Connection, message: Union[InboundMessage, UnknownAction]):
        handler = self._handlers.get(type(message))
        if handler is None:
            logger.debug(f"Ignoring message from {sender.session_id}: {message!r}")
            return
        await handler(sender, message)

    async def _send_session_created(self, sender: Connection, message: CreateSession):
        response = SignalMessage(
            action=Action.SESSION_CREATED,
            session_id=sender.session_id,
        )
        await self._send(sender, response)

    async def _handle_session_join(self, sender: Connection, message: JoinSession):
        target = self._resolve(sender, message.target)
        if target is None:
            await self._send_error(sender, JOIN_TARGET_NOT_FOUND)
            return

        logger.info(f"Peer {sender.session_id} joined session {message.target}")
        response = SignalMessage(
            action=Action.PEER_JOINED,
            session_id=sender.session_id,
            target=message.target,
        )
        await self._send(target, response)

    async def _forward_offer(self, sender: Connection, message: Offer):
        target = self._resolve(sender, message.target)
        if target is None:
            await self._send_error(sender, OFFER_TARGET_NOT_FOUND)
            return

        logger.info(f"Forwarding offer {sender.session_id} -> {message.target}")
        await self._send(target, SignalMessage(
            action=Action.OFFER,
            session_id=sender.session_id,
            sdp=message.sdp,
            target=message.target,
        ))

    async def _forward_answer(self, sender: Connection, message: Answer):
        target = self._resolve(sender, message.target)
        if target is None:
            await self._send_error(sender, ANSWER_TARGET_NOT_FOUND)
            return

        logger.info(f"Forwarding answer {sender.session_id} -> {message.target}")
        await self._send(target, SignalMessage(
            action=Action.ANSWER,
            session_id=sender.session_id,
            sdp=message.sdp,
            target=message.target,
        ))

    async def _forward_candidate(self, sender: Connection, message: Candidate):
        target = self._resolve(sender, message.target)
        if target is None:
            await self._send_error(sender, CANDIDATE_TARGET_NOT_FOUND)
            return

        logger.debug(f"Forwarding candidate {sender.session_id} -> {message.target}")
        await self._send(target, SignalMessage(
            action=Action.CANDIDATE,
            session_id=sender.session_id,
            candidate=message.candidate,
            target=message.target,
        ))

    def _resolve(self, sender: Connection, target_id: str) -> Optional[Connection]:
        target = self.registry.lookup(target_id) if target_id else None
        if target is None:
            logger.warning(f"Target {target_id!r} requested by {sender.session_id} is not connected")
        return target

    async def _send_error(self, sender: Connection, error_text: str):
        await self._send(sender, SignalMessage(action=Action.ERROR, sdp=error_text))

    async def _send(self, connection: Connection, message: SignalMessage) -> SendResult:
        result = await connection.send(message)
        if result is SendResult.FAILED:
            logger.info(f"Dropped {message.action.value} for {connection.session_id}, no retry")
        return result
