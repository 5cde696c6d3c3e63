import asyncio
import json

from rover_relay.registry import Client, ClientRegistry, Role

from conftest import FakeClient, FakeWebSocket


def test_register_is_idempotent(registry):
    client = FakeClient("a")
    assert registry.register_dashboard(client) is Role.DASHBOARD
    assert registry.register_dashboard(client) is Role.DASHBOARD
    assert registry.dashboards() == [client]
    assert registry.get_stats() == {"dashboards": 1, "rovers": 0}


def test_register_then_unregister_leaves_no_membership(registry):
    client = FakeClient("a")
    registry.register_dashboard(client)
    registry.unregister(client)
    assert client not in registry.dashboards()
    assert client not in registry.rovers()
    assert registry.role_of(client) is None


def test_unregister_unknown_client_is_safe(registry):
    registry.unregister(FakeClient("never-registered"))
    assert registry.get_stats() == {"dashboards": 0, "rovers": 0}


def test_second_registration_moves_client(registry):
    client = FakeClient("a")
    registry.register_dashboard(client)
    registry.register_rover(client)
    assert registry.role_of(client) is Role.ROVER
    assert registry.dashboards() == []
    assert registry.rovers() == [client]


def test_members_returns_snapshot(registry):
    a, b = FakeClient("a"), FakeClient("b")
    registry.register_dashboard(a)
    snapshot = registry.dashboards()
    registry.register_dashboard(b)
    assert snapshot == [a]


def test_client_sends_frames_in_order():
    async def scenario():
        ws = FakeWebSocket([])
        client = Client(ws, client_id="c1")
        client.start()
        for i in range(5):
            assert client.send("radar-data", {"front": i})
        await client.flush()
        await client.close()
        return ws.sent

    sent = asyncio.run(scenario())
    assert [json.loads(frame)["data"]["front"] for frame in sent] == [0, 1, 2, 3, 4]
    assert json.loads(sent[0]) == {"event": "radar-data", "data": {"front": 0}}


def test_client_drops_when_queue_full():
    client = Client(FakeWebSocket([]), queue_size=2)
    assert client.send("a")
    assert client.send("b")
    assert not client.send("c")
    assert client.stats.frames_dropped == 1


def test_failed_send_marks_client_closing():
    class BrokenWebSocket(FakeWebSocket):
        async def send_text(self, text):
            raise RuntimeError("socket closed")

    async def scenario():
        client = Client(BrokenWebSocket([]))
        client.start()
        client.send("env-data", {})
        await client.flush()
        closing = client.closing
        accepted = client.send("env-data", {})
        await client.close()
        return closing, accepted

    closing, accepted = asyncio.run(scenario())
    assert closing
    assert not accepted


def test_client_drops_non_finite_frames():
    async def scenario():
        ws = FakeWebSocket([])
        client = Client(ws)
        client.start()
        rejected = client.send("power-data", {"power": float("inf")})
        accepted = client.send("power-data", {"power": 1.5})
        await client.flush()
        await client.close()
        return ws, client, rejected, accepted

    ws, client, rejected, accepted = asyncio.run(scenario())
    assert not rejected
    assert accepted
    assert client.stats.frames_dropped == 1
    assert [json.loads(text)["data"] for text in ws.sent] == [{"power": 1.5}]
