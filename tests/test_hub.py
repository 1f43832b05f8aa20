"""Test the live update hub."""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vantelemetry.servers import TelemetryHub


@pytest.fixture
def hub():
    return TelemetryHub(host="127.0.0.1", port=0)


@pytest.fixture
def websocket():
    ws = MagicMock()
    ws.send = AsyncMock()
    return ws


def last_reply(websocket):
    return json.loads(websocket.send.await_args[0][0])


def test_subscribe_and_unsubscribe(hub, websocket):
    """Test a client can join and leave a channel."""
    asyncio.run(hub._handle_message(websocket, json.dumps({"action": "subscribe", "channel": "tanks"})))
    assert last_reply(websocket) == {"type": "subscribed", "channel": "tanks"}
    assert hub.subscriber_count("tanks") == 1

    asyncio.run(hub._handle_message(websocket, json.dumps({"action": "unsubscribe", "channel": "tanks"})))
    assert last_reply(websocket) == {"type": "unsubscribed", "channel": "tanks"}
    assert hub.subscriber_count("tanks") == 0


@pytest.mark.parametrize("message", [
    "not json",
    json.dumps(["subscribe"]),
    json.dumps({"action": "subscribe", "channel": "weather"}),
    json.dumps({"action": "shout", "channel": "alerts"}),
])
def test_bad_requests_get_an_error(hub, websocket, message):
    """Test malformed or unknown requests are answered with an error."""
    asyncio.run(hub._handle_message(websocket, message))
    assert last_reply(websocket)["type"] == "error"
    assert all(hub.subscriber_count(c) == 0 for c in ("tanks", "controls", "alerts", "electrical"))


def test_drop_removes_client_everywhere(hub, websocket):
    """Test a disconnected client is removed from every channel."""
    for channel in ("tanks", "alerts"):
        asyncio.run(hub._handle_message(websocket, json.dumps({"action": "subscribe", "channel": channel})))

    hub._drop(websocket)

    assert hub.subscriber_count("tanks") == 0
    assert hub.subscriber_count("alerts") == 0


def test_publish_when_stopped_is_a_no_op(hub):
    """Test publishing without a running loop does nothing."""
    hub.publish("tanks", "tank_level_updated", {"id": "t1", "level": 50.0})


def test_broadcast_targets_channel_subscribers(hub, websocket):
    """Test a broadcast reaches only the channel's subscribers."""
    other = MagicMock()
    other.send = AsyncMock()
    asyncio.run(hub._handle_message(websocket, json.dumps({"action": "subscribe", "channel": "alerts"})))
    asyncio.run(hub._handle_message(other, json.dumps({"action": "subscribe", "channel": "tanks"})))

    with patch("vantelemetry.servers.websockets.broadcast") as broadcast:
        hub._broadcast("alerts", '{"channel": "alerts"}')

    broadcast.assert_called_once_with([websocket], '{"channel": "alerts"}')


def test_broadcast_without_subscribers(hub):
    """Test nothing is sent on an empty channel."""
    with patch("vantelemetry.servers.websockets.broadcast") as broadcast:
        hub._broadcast("controls", "{}")
    broadcast.assert_not_called()


def test_publish_schedules_on_hub_loop(hub):
    """Test publish hands the encoded message to the hub's loop."""
    loop = MagicMock()
    loop.is_running.return_value = True
    hub._loop = loop

    hub.publish("controls", "control_state_changed", {"control_id": "c1", "state": True})

    callback, channel, message = loop.call_soon_threadsafe.call_args[0]
    assert channel == "controls"
    assert json.loads(message) == {
        "channel": "controls",
        "event": "control_state_changed",
        "data": {"control_id": "c1", "state": True},
    }
