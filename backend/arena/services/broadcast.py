"""
Real-time bracket updates over WebSockets.

Clients join a per-tournament room; routes push events after a mutation has
been committed. Delivery is best effort: a failed send drops that socket and
is logged, it never reaches the request that triggered it.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)

EVENT_BRACKET_UPDATED = "bracket-updated"
EVENT_MATCH_UPDATED = "match-updated"
EVENT_STAGE_CREATED = "stage-created"


class BracketBroadcaster:
    def __init__(self):
        self.rooms: Dict[int, List[WebSocket]] = {}

    async def connect(self, tournament_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        self.rooms.setdefault(tournament_id, []).append(websocket)
        logger.debug("WebSocket joined tournament %s (%d in room)", tournament_id, len(self.rooms[tournament_id]))

    def disconnect(self, tournament_id: int, websocket: WebSocket) -> None:
        room = self.rooms.get(tournament_id, [])
        if websocket in room:
            room.remove(websocket)
        if not room:
            self.rooms.pop(tournament_id, None)

    def connection_count(self, tournament_id: Optional[int] = None) -> int:
        if tournament_id is not None:
            return len(self.rooms.get(tournament_id, []))
        return sum(len(room) for room in self.rooms.values())

    async def broadcast(self, tournament_id: int, event: str, data: Optional[Dict[str, Any]] = None) -> int:
        """Send an event to every socket in the tournament room. Returns deliveries."""
        message = {
            "event": event,
            "tournament_id": tournament_id,
            "data": data or {},
            "sent_at": datetime.utcnow().isoformat(),
        }
        delivered = 0
        for websocket in list(self.rooms.get(tournament_id, [])):
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping WebSocket for tournament %s after failed %s send", tournament_id, event, exc_info=True)
                self.disconnect(tournament_id, websocket)
        logger.debug("Broadcast %s to %d sockets for tournament %s", event, delivered, tournament_id)
        return delivered
