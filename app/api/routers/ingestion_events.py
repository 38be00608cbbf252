"""
app/api/routers/ingestion_events.py

Websocket stream of ingestion events for an uploader or a single job.
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from fastapi.websockets import WebSocketState

from app.domain.ingestion import IngestionEvent
from app.services.event_subscriber import EventSubscriber, get_event_subscriber
from app.services.ingestion_intake_service import (
    IngestionIntakeService,
    get_ingestion_intake_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ingestion"])


async def _forward(websocket: WebSocket, subscriber: EventSubscriber, routing_keys: list[str]) -> None:
    async for message in subscriber.listen(routing_keys):
        await websocket.send_text(message)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        incoming = await websocket.receive()
        if incoming.get("type") == "websocket.disconnect":
            return


@router.websocket("/ws/ingestion")
async def ingestion_events(
    websocket: WebSocket,
    owner: str | None = None,
    process_id: str | None = None,
    subscriber: EventSubscriber = Depends(get_event_subscriber),
    intake: IngestionIntakeService = Depends(get_ingestion_intake_service),
) -> None:
    """
    Subscribe to events of ``owner`` and/or ``process_id``.

    When ``owner`` is given, the current history snapshot is sent first.
    """

    routing_keys = [key.strip() for key in (owner, process_id) if key and key.strip()]
    if not routing_keys:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    if owner and owner.strip():
        history = await run_in_threadpool(intake.get_history, owner_identity=owner.strip())
        await websocket.send_text(
            json.dumps({"event": IngestionEvent.HISTORY, "payload": history.to_wire()})
        )

    forward_task = asyncio.create_task(_forward(websocket, subscriber, routing_keys))
    disconnect_task = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, _ = await asyncio.wait(
            {forward_task, disconnect_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Event stream closed with error keys=%s: %s", routing_keys, exc)
    finally:
        for task in (forward_task, disconnect_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(forward_task, disconnect_task, return_exceptions=True)

    if websocket.client_state == WebSocketState.CONNECTED:
        await websocket.close()
    logger.debug("Event stream closed keys=%s", routing_keys)
