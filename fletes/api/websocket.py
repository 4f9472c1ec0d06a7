"""WebSocket live feed of driver locations."""

import json
from typing import Any
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from fletes.models.driver import LocationUpdate
from fletes.services.locations import LocationService
from fletes.state.manager import StateManager, get_state_manager
from fletes.utils.logging import get_logger

logger = get_logger(__name__)

LOCATIONS_CHANNEL = "driver_locations"


class WebSocketMessage(BaseModel):
    """Message sent by a feed client."""

    type: str  # "ping", "snapshot"


class ConnectionManager:
    """Tracks feed subscribers and fans messages out to them."""

    def __init__(self) -> None:
        self.active_connections: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        client_id = str(uuid4())
        self.active_connections[client_id] = websocket
        logger.info("websocket_connected", client_id=client_id)
        return client_id

    def disconnect(self, client_id: str) -> None:
        """Remove a WebSocket connection."""
        if client_id in self.active_connections:
            del self.active_connections[client_id]
            logger.info("websocket_disconnected", client_id=client_id)

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send a message to every subscriber. Returns how many got it."""
        delivered = 0
        for client_id, websocket in list(self.active_connections.items()):
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("websocket_send_failed", client_id=client_id, error=str(e))
                self.disconnect(client_id)
        return delivered


# Global connection manager
manager = ConnectionManager()


async def publish_location_update(
    update: LocationUpdate,
    state_manager: StateManager,
) -> None:
    """Push an accepted report to local subscribers and to the Redis channel."""
    message = {
        "type": "location",
        "location": update.location.model_dump(mode="json"),
        "job_id": update.job_id,
        "distance_meters": update.distance_meters,
        "distance_to_target": update.distance_to_target,
        "eta_minutes": update.eta_minutes,
    }
    await manager.broadcast(message)
    await state_manager.publish(LOCATIONS_CHANNEL, json.dumps(message))

    if update.raised_flags:
        await manager.broadcast(
            {
                "type": "proximity",
                "driver_id": update.location.driver_id,
                "job_id": update.job_id,
                "flags": update.raised_flags,
            }
        )


async def send_snapshot(websocket: WebSocket, locations: LocationService) -> None:
    """Send the latest position of every driver."""
    await websocket.send_json(
        {
            "type": "snapshot",
            "locations": [
                location.model_dump(mode="json") for location in await locations.list_locations()
            ],
        }
    )


async def handle_location_feed(websocket: WebSocket) -> None:
    """
    Serve one live feed subscriber.

    The client gets a snapshot on connect, then every accepted location
    report and proximity event as it happens.
    """
    state_manager = await get_state_manager()
    locations = LocationService(state_manager)

    client_id = await manager.connect(websocket)

    try:
        await send_snapshot(websocket, locations)

        while True:
            data = await websocket.receive_text()

            try:
                ws_message = WebSocketMessage(**json.loads(data))
            except (json.JSONDecodeError, TypeError, ValidationError) as e:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": "Invalid message format",
                        "details": str(e),
                    }
                )
                continue

            if ws_message.type == "ping":
                await websocket.send_json({"type": "pong"})
            elif ws_message.type == "snapshot":
                await send_snapshot(websocket, locations)

    except WebSocketDisconnect:
        manager.disconnect(client_id)
        logger.info("websocket_client_disconnected", client_id=client_id)

    except Exception as e:
        logger.error("websocket_error", client_id=client_id, error=str(e))
        manager.disconnect(client_id)
