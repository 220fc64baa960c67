import json
import uuid
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from app.core.permissions import can_watch_attendance
from app.core.websocket_manager import connection_manager
from app.core.websocket_auth import authenticate_websocket
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def attendance_websocket(websocket: WebSocket):
    """Live attendance updates; clients subscribe per activity schedule"""
    connection_id = str(uuid.uuid4())

    user = await authenticate_websocket(websocket)
    if not user:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication failed")
        return
    if not can_watch_attendance(user):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Access denied")
        return

    await connection_manager.connect(websocket, user.id, connection_id)
    try:
        await websocket.send_text(json.dumps({
            "type": "connection_established",
            "data": {
                "user_id": user.id,
                "connection_id": connection_id,
                "message": "Connected successfully"
            }
        }))

        while True:
            data = await websocket.receive_text()
            try:
                message_data = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from user {user.id}")
                await websocket.send_text(json.dumps({
                    "type": "error",
                    "data": {"message": "Invalid JSON format"}
                }))
                continue
            await connection_manager.handle_message(websocket, connection_id, message_data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user.id}")
    finally:
        await connection_manager.disconnect(connection_id)
