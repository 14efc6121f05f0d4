# routes/signaling_routes.py
from fastapi import APIRouter, WebSocket

from signaling import signaling_endpoint

router = APIRouter()


@router.websocket("/ws")
async def websocket_signaling(websocket: WebSocket):
    """
    Signaling channel: one WebSocket per peer, relaying session, SDP and ICE
    messages to other connected peers by session id
    """
    await signaling_endpoint(websocket)
