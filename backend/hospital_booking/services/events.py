"""
backend/hospital_booking/services/events.py

Event emitter: pushes real-time events to Redis queues for the socket
transport (external) to fan out.

Events are addressed to rooms named "{role}_{entity_id}", e.g.
"doctor_12", "patient_40", "helpdesk_3" (hospital id).

Two queues:
- events:p2p: room-addressed delivery
- events:broadcast: any interested listener (status changes)
"""

import json
import time
import logging

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"
BROADCAST_QUEUE = "events:broadcast"


def room(role: str, entity_id) -> str:
    return f"{role}_{entity_id}"


def emit_event(room_name: str, event_type: str, payload: dict) -> bool:
    """Emit a room-addressed event to `events:p2p`."""
    return _push(P2P_QUEUE, {"type": event_type, "room": room_name, **payload})


def emit_broadcast(event_type: str, payload: dict) -> bool:
    """Emit an event to `events:broadcast`, for any listener."""
    return _push(BROADCAST_QUEUE, {"type": event_type, **payload})


def _push(queue: str, event: dict) -> bool:
    """
    Stamp and enqueue one event.

    Returns False when Redis refused it. Failures are logged, never raised:
    the change that triggered the event is already committed.
    """
    event["ts"] = int(time.time())
    target = event.get("room", queue)
    try:
        redis_client.rpush(queue, json.dumps(event, default=str))
    except Exception as e:
        logger.error(f"Failed to emit {event['type']} to {target}: {e}")
        return False
    logger.info(f"Event emitted: {event['type']} → {target}")
    return True
