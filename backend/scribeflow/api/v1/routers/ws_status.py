import json
import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from scribeflow.core.pubsub import channel

router = APIRouter()
logger = logging.getLogger(__name__)

@router.websocket("/ws/draft-status")
async def ws_draft_status(ws: WebSocket):
    """
    WebSocket endpoint for the editor's save indicator.

    Message flow:
    1. Client connects to WebSocket
    2. Client sends: {"type": "subscribe", "segmentId": "..."}
    3. Server subscribes client to that segment's draft-status updates
    4. Server sends: {"type": "ready", "segmentId": "...", "status": {...} | null}
    5. Server pushes {"type": "draft-status", ...} whenever the draft state,
       progress or last save time changes

    Sending another subscribe message moves the client to the new segment.
    """
    await ws.accept()
    logger.info("[ws_status] connected")
    segment_id = None
    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except ValueError:
                await ws.send_text(json.dumps({"type": "error", "code": "BAD_MESSAGE"}))
                continue
            if not isinstance(msg, dict) or msg.get("type") != "subscribe" or not msg.get("segmentId"):
                await ws.send_text(json.dumps({"type": "error", "code": "BAD_MESSAGE"}))
                continue
            if segment_id:
                channel.unsubscribe(segment_id, ws)
            segment_id = str(msg["segmentId"])
            await channel.subscribe(segment_id, ws)
            logger.info("[ws_status] subscribed %s", segment_id)
            status = ws.app.state.workflow.autosave.status(segment_id)
            await ws.send_text(json.dumps({
                "type": "ready",
                "segmentId": segment_id,
                "status": status.to_dict() if status else None,
            }, ensure_ascii=False))
    except WebSocketDisconnect:
        if segment_id:
            channel.unsubscribe(segment_id, ws)
        logger.info("[ws_status] disconnected")
