"""
Real-time Job Feed

WebSocket endpoint streaming maintenance-job snapshots whenever the
collection changes.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from phoneshop.dependencies import get_job_repository
from phoneshop.services.maintenance_jobs import MaintenanceJobRepository
from phoneshop.services.websocket_manager import get_ws_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/jobs")
async def websocket_jobs(
    websocket: WebSocket,
    status: Optional[str] = Query(None),
    repo: MaintenanceJobRepository = Depends(get_job_repository),
):
    """
    Live maintenance-job feed.

    Usage:
        const ws = new WebSocket('ws://localhost:8000/api/realtime/ws/jobs?status=pending');
        ws.onmessage = (event) => renderJobs(JSON.parse(event.data).data);

    Message types received:
        - jobs_snapshot: {"type": "jobs_snapshot", "status": ..., "count": N, "data": [...]}
          full result set, newest visit first, sent on connect and after every change
        - pong: reply to {"type": "ping"}
    """
    manager = get_ws_manager()
    await manager.connect(websocket, status)

    async def pump():
        snapshots = repo.watch(status)
        try:
            async for jobs in snapshots:
                delivered = await manager.send_personal({
                    "type": "jobs_snapshot",
                    "status": status,
                    "count": len(jobs),
                    "data": [job.model_dump(mode="json") for job in jobs],
                }, websocket)
                if not delivered:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[WS] Job feed error: {e}")
        finally:
            await snapshots.aclose()

    pump_task = asyncio.create_task(pump())
    try:
        while True:
            data = await websocket.receive_json()
            if data.get("type") == "ping":
                await manager.send_personal({"type": "pong"}, websocket)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"[WS] Error: {e}")
    finally:
        pump_task.cancel()
        try:
            await pump_task
        except asyncio.CancelledError:
            pass
        manager.disconnect(websocket)


@router.get("/status")
async def get_realtime_status():
    """Connected feed clients per watched status"""
    return {
        "service": "realtime",
        "connections": get_ws_manager().get_status(),
    }
