import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/tournaments/{tournament_id}")
async def tournament_updates(websocket: WebSocket, tournament_id: int):
    """Join a tournament room; the server pushes bracket events, client messages are ignored"""
    broadcaster = websocket.app.state.broadcaster
    await broadcaster.connect(tournament_id, websocket)
    await websocket.send_json({"event": "connected", "tournament_id": tournament_id})
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("WebSocket left tournament %s", tournament_id)
    finally:
        broadcaster.disconnect(tournament_id, websocket)
