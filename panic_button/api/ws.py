"""WebSocket endpoint streaming button phases."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from panic_button.core.ws_manager import ws_manager
from panic_button.services.panic_machine import describe_state

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Pushes {"event": "button.phase", "data": <state>} on every transition.
    The current phase is sent right after connecting.
    """
    machine = websocket.app.state.machine
    await ws_manager.connect(websocket)
    try:
        await ws_manager.send(websocket, "button.phase", describe_state(machine.state))
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"event":"pong"}')
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket)
