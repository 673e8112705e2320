# Overview: Per-restaurant WebSocket rooms for order, table and stock events.

"""
Real-time hub

Clients connect to /ws and send JSON frames {"event": ..., "data": ...}:
- join-restaurant: data is a session token; the socket joins that
  token's restaurant room and gets {"event": "joined"} back
- new-order: relayed to the room as order-created
- update-order-status: relayed to the room as order-updated

REST handlers call emit() after a successful commit to push
order-created, order-updated, table-updated and stock-alert.

Delivery is fire-and-forget. A send that fails drops the socket from its
room; there is no buffering and no replay for late joiners.
"""

from __future__ import annotations

import json
import threading

from flask import current_app, g
from simple_websocket import ConnectionClosed

from .extensions import sock
from .services import session_service


EVENT_ORDER_CREATED = "order-created"
EVENT_ORDER_UPDATED = "order-updated"
EVENT_TABLE_UPDATED = "table-updated"
EVENT_STOCK_ALERT = "stock-alert"


class RestaurantHub:
    """Sockets grouped by restaurant id."""

    def __init__(self):
        self._rooms: dict[int, set] = {}
        self._lock = threading.Lock()

    def join(self, restaurant_id: int, ws) -> None:
        with self._lock:
            for members in self._rooms.values():
                members.discard(ws)
            self._rooms.setdefault(restaurant_id, set()).add(ws)

    def leave(self, ws) -> None:
        with self._lock:
            for restaurant_id in list(self._rooms):
                self._rooms[restaurant_id].discard(ws)
                if not self._rooms[restaurant_id]:
                    del self._rooms[restaurant_id]

    def members(self, restaurant_id: int) -> set:
        with self._lock:
            return set(self._rooms.get(restaurant_id, ()))

    def broadcast(self, restaurant_id: int, event: str, data) -> int:
        """Send to every socket in the room. Returns how many sends succeeded."""
        message = json.dumps({"event": event, "data": data}, default=str)
        delivered = 0
        for ws in self.members(restaurant_id):
            try:
                ws.send(message)
                delivered += 1
            except (ConnectionClosed, OSError):
                current_app.logger.warning(
                    "Dropping closed socket from restaurant %s room", restaurant_id,
                )
                self.leave(ws)
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._rooms.clear()


hub = RestaurantHub()


def emit(event: str, data, restaurant_id: int | None = None) -> int:
    """Broadcast to the current request's restaurant unless one is given."""
    if restaurant_id is None:
        restaurant_id = g.restaurant_id
    return hub.broadcast(restaurant_id, event, data)


def _send(ws, event: str, data) -> None:
    ws.send(json.dumps({"event": event, "data": data}, default=str))


def _parse(raw):
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return None, None
    if not isinstance(message, dict):
        return None, None
    return message.get("event"), message.get("data")


RELAYED_EVENTS = {
    "new-order": EVENT_ORDER_CREATED,
    "update-order-status": EVENT_ORDER_UPDATED,
}


@sock.route("/ws")
def websocket(ws):
    restaurant_id = None
    try:
        while True:
            event, data = _parse(ws.receive())
            if event is None:
                _send(ws, "error", {"message": "Invalid message"})
                continue

            if event == "join-restaurant":
                context = session_service.validate_session(data if isinstance(data, str) else None)
                if context is None:
                    _send(ws, "error", {"message": "Invalid or expired token"})
                    continue
                restaurant_id = context.restaurant_id
                hub.join(restaurant_id, ws)
                _send(ws, "joined", {"restaurant_id": restaurant_id})
            elif event in RELAYED_EVENTS:
                if restaurant_id is None:
                    _send(ws, "error", {"message": "Join a restaurant first"})
                    continue
                hub.broadcast(restaurant_id, RELAYED_EVENTS[event], data)
            else:
                _send(ws, "error", {"message": f"Unknown event: {event}"})
    except ConnectionClosed:
        pass
    finally:
        hub.leave(ws)
