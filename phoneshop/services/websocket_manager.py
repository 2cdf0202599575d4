"""
WebSocket Manager

Registry of clients connected to the live job feed, grouped by the job
status each one watches ("all" when no status filter was given).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Set

from fastapi import WebSocket

from phoneshop.services.timestamps import utc_now

logger = logging.getLogger(__name__)

ALL_JOBS = "all"


@dataclass
class FeedClient:
    """One connected feed client"""
    watching: str
    client_ip: str
    connected_at: str


class ConnectionManager:
    """Keeps track of live job feed connections and delivers messages to them"""

    def __init__(self):
        self.clients: Dict[WebSocket, FeedClient] = {}
        self.watchers: Dict[str, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, status: Optional[str] = None):
        await websocket.accept()
        watching = status or ALL_JOBS
        self.clients[websocket] = FeedClient(
            watching=watching,
            client_ip=websocket.client.host if websocket.client else "unknown",
            connected_at=utc_now().isoformat(),
        )
        self.watchers.setdefault(watching, set()).add(websocket)
        logger.info(f"[WS] Feed client watching '{watching}'. Total: {len(self.clients)}")

    def disconnect(self, websocket: WebSocket):
        """Forget a connection; safe to call more than once"""
        client = self.clients.pop(websocket, None)
        if client is None:
            return
        group = self.watchers.get(client.watching)
        if group is not None:
            group.discard(websocket)
            if not group:
                del self.watchers[client.watching]
        logger.info(f"[WS] Feed client left '{client.watching}'. Total: {len(self.clients)}")

    async def send_personal(self, message: dict, websocket: WebSocket) -> bool:
        """Deliver to one client; a failed send drops the client and returns False"""
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"[WS] Send to feed client failed: {e}")
            self.disconnect(websocket)
            return False

    def get_status(self) -> dict:
        return {
            "total_connections": len(self.clients),
            "watching": {status: len(group) for status, group in self.watchers.items()},
            "clients": [
                {"client_ip": c.client_ip, "connected_at": c.connected_at, "watching": c.watching}
                for c in self.clients.values()
            ],
        }


# Singleton instance
manager = ConnectionManager()


def get_ws_manager() -> ConnectionManager:
    return manager
