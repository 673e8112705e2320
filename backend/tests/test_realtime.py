# Overview: Pytest coverage for restaurant rooms and fire-and-forget broadcast.

import json

from simple_websocket import ConnectionClosed

from comanda import realtime
from comanda.realtime import RestaurantHub


class FakeSocket:
    def __init__(self, fail_with=None):
        self.sent = []
        self.fail_with = fail_with

    def send(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(json.loads(message))


class TestRestaurantHub:

    def test_broadcast_reaches_only_the_room(self, app):
        hub = RestaurantHub()
        mine, theirs = FakeSocket(), FakeSocket()
        hub.join(1, mine)
        hub.join(2, theirs)

        delivered = hub.broadcast(1, realtime.EVENT_ORDER_CREATED, {"id": 7})
        assert delivered == 1
        assert mine.sent == [{"event": "order-created", "data": {"id": 7}}]
        assert theirs.sent == []

    def test_join_moves_socket_between_rooms(self, app):
        hub = RestaurantHub()
        socket = FakeSocket()
        hub.join(1, socket)
        hub.join(2, socket)
        assert hub.members(1) == set()
        assert hub.members(2) == {socket}

    def test_closed_socket_is_dropped(self, app):
        hub = RestaurantHub()
        alive = FakeSocket()
        closed = FakeSocket(fail_with=ConnectionClosed())
        hub.join(1, alive)
        hub.join(1, closed)

        assert hub.broadcast(1, realtime.EVENT_TABLE_UPDATED, {"status": "cleaning"}) == 1
        assert hub.members(1) == {alive}

    def test_socket_error_is_dropped(self, app):
        hub = RestaurantHub()
        broken = FakeSocket(fail_with=OSError("broken pipe"))
        hub.join(3, broken)
        assert hub.broadcast(3, realtime.EVENT_STOCK_ALERT, {}) == 0
        assert hub.members(3) == set()

    def test_leave_and_empty_room(self, app):
        hub = RestaurantHub()
        socket = FakeSocket()
        hub.join(1, socket)
        hub.leave(socket)
        assert hub.members(1) == set()
        assert hub.broadcast(1, realtime.EVENT_ORDER_UPDATED, {}) == 0

    def test_emit_with_explicit_restaurant(self, app):
        socket = FakeSocket()
        realtime.hub.join(9, socket)
        assert realtime.emit(realtime.EVENT_ORDER_UPDATED, {"id": 1}, restaurant_id=9) == 1
        assert socket.sent[0]["event"] == "order-updated"


class TestMessageParsing:

    def test_valid_frame(self):
        assert realtime._parse('{"event": "new-order", "data": {"id": 1}}') == ("new-order", {"id": 1})

    def test_invalid_json(self):
        assert realtime._parse("not json") == (None, None)

    def test_non_object_frame(self):
        assert realtime._parse("[1, 2]") == (None, None)

    def test_client_events_relay_as_server_events(self):
        assert realtime.RELAYED_EVENTS == {
            "new-order": "order-created",
            "update-order-status": "order-updated",
        }
