"""Tests for the gateway session using a scripted websocket."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import pytest
from websockets.exceptions import ConnectionClosedOK

from botkit.core.contracts import Message
from botkit.core.dispatcher import LiveEventDispatcher
from botkit.core.gateway import AutoGateway, GatewayError, Opcode
from botkit.core.intents import GatewayIntents

HELLO = {"op": 10, "d": {"heartbeat_interval": 50}}
READY = {
    "op": 0,
    "s": 1,
    "t": "READY",
    "d": {"v": 10, "user": {"id": "1", "username": "bot", "bot": True}, "session_id": "sess"},
}
MESSAGE = {
    "op": 0,
    "s": 2,
    "t": "MESSAGE_CREATE",
    "d": {
        "id": "5",
        "channel_id": "6",
        "author": {"id": "7", "username": "alice"},
        "content": "hi",
    },
}


class ScriptedSocket:
    """Websocket double that replays queued frames until closed."""

    def __init__(self, frames: list[dict[str, Any]]) -> None:
        self._incoming: asyncio.Queue[str] = asyncio.Queue()
        for frame in frames:
            self.push(frame)
        self.sent: list[dict[str, Any]] = []
        self.closed = asyncio.Event()

    def push(self, frame: dict[str, Any]) -> None:
        self._incoming.put_nowait(json.dumps(frame))

    async def send(self, message: str) -> None:
        if self.closed.is_set():
            raise ConnectionClosedOK(None, None)
        self.sent.append(json.loads(message))

    async def recv(self) -> str:
        getter = asyncio.create_task(self._incoming.get())
        closer = asyncio.create_task(self.closed.wait())
        try:
            done, _ = await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            getter.cancel()
            closer.cancel()
        if getter in done:
            return getter.result()
        raise ConnectionClosedOK(None, None)

    async def close(self) -> None:
        self.closed.set()

    def sent_ops(self) -> list[int]:
        return [frame["op"] for frame in self.sent]


class StubRest:
    async def get_gateway_bot(self) -> dict[str, Any]:
        return {"url": "wss://gateway.example.test"}


def _gateway(
    socket: ScriptedSocket,
    dispatcher: LiveEventDispatcher | None = None,
    *,
    ready_timeout: float = 1.0,
) -> tuple[AutoGateway, list[str]]:
    urls: list[str] = []

    async def connector(url: str) -> ScriptedSocket:
        urls.append(url)
        return socket

    gateway = AutoGateway(
        token="token",
        intents=GatewayIntents.GUILD_MESSAGES,
        rest_client=StubRest(),  # type: ignore[arg-type]
        event_dispatcher=dispatcher or LiveEventDispatcher(),
        connector=connector,
        ready_timeout=ready_timeout,
    )
    return gateway, urls


@pytest.mark.asyncio
async def test_stop_before_start_is_a_no_op_and_idempotent() -> None:
    gateway, urls = _gateway(ScriptedSocket([]))

    await gateway.stop()
    await gateway.stop()
    await gateway.block()

    assert urls == []
    assert not gateway.running


@pytest.mark.asyncio
async def test_start_identifies_and_waits_for_ready() -> None:
    socket = ScriptedSocket([HELLO, READY])
    gateway, urls = _gateway(socket)

    await gateway.start()

    assert urls == ["wss://gateway.example.test/?v=10&encoding=json"]
    identify = socket.sent[0]
    assert identify["op"] == Opcode.IDENTIFY
    assert identify["d"]["token"] == "token"
    assert identify["d"]["intents"] == int(GatewayIntents.GUILD_MESSAGES)
    assert gateway.session_id == "sess"
    assert gateway.running

    await gateway.stop()
    assert socket.closed.is_set()
    assert not gateway.running


@pytest.mark.asyncio
async def test_dispatch_frames_reach_bound_handlers() -> None:
    dispatcher = LiveEventDispatcher()
    received: list[Message] = []
    got_message = asyncio.Event()

    async def on_message(message: Message) -> None:
        received.append(message)
        got_message.set()

    dispatcher.on_message_create(on_message)
    socket = ScriptedSocket([HELLO, READY, MESSAGE])
    gateway, _ = _gateway(socket, dispatcher)

    await gateway.start()
    await asyncio.wait_for(got_message.wait(), timeout=1.0)
    gateway.request_stop()
    await asyncio.wait_for(gateway.block(), timeout=1.0)
    await gateway.stop()

    assert received[0].content == "hi"
    assert gateway.sequence == 2


@pytest.mark.asyncio
async def test_remote_close_releases_block() -> None:
    socket = ScriptedSocket([HELLO, READY])
    gateway, _ = _gateway(socket)
    await gateway.start()

    await socket.close()
    await asyncio.wait_for(gateway.block(), timeout=1.0)
    await gateway.stop()


@pytest.mark.asyncio
async def test_reconnect_request_ends_session() -> None:
    socket = ScriptedSocket([HELLO, READY])
    gateway, _ = _gateway(socket)
    await gateway.start()

    socket.push({"op": 7, "d": None})
    await asyncio.wait_for(gateway.block(), timeout=1.0)
    await gateway.stop()


@pytest.mark.asyncio
async def test_heartbeat_request_is_answered_immediately() -> None:
    socket = ScriptedSocket([HELLO, READY, {"op": 1, "d": None}])
    gateway, _ = _gateway(socket)
    await gateway.start()

    for _ in range(50):
        if Opcode.HEARTBEAT in socket.sent_ops():
            break
        await asyncio.sleep(0.01)
    await gateway.stop()

    heartbeat = next(frame for frame in socket.sent if frame["op"] == Opcode.HEARTBEAT)
    assert heartbeat["d"] == 1


@pytest.mark.asyncio
async def test_missing_hello_fails_start() -> None:
    gateway, _ = _gateway(ScriptedSocket([READY]))

    with pytest.raises(GatewayError):
        await gateway.start()
    await gateway.stop()


@pytest.mark.asyncio
async def test_invalid_session_before_ready_fails_start() -> None:
    gateway, _ = _gateway(ScriptedSocket([HELLO, {"op": 9, "d": False}]))

    with pytest.raises(GatewayError, match="closed before"):
        await gateway.start()
    await gateway.stop()


@pytest.mark.asyncio
async def test_ready_timeout_fails_start() -> None:
    gateway, _ = _gateway(ScriptedSocket([HELLO]), ready_timeout=0.05)

    with pytest.raises(GatewayError, match="not ready"):
        await gateway.start()
    await gateway.stop()


@pytest.mark.asyncio
async def test_stopped_gateway_cannot_restart() -> None:
    gateway, _ = _gateway(ScriptedSocket([HELLO, READY]))
    await gateway.stop()

    with pytest.raises(GatewayError):
        await gateway.start()


class FailingHeartbeatSocket(ScriptedSocket):
    """Accepts IDENTIFY, then fails every heartbeat send."""

    def __init__(self, frames: list[dict[str, Any]], error: Exception) -> None:
        super().__init__(frames)
        self._error = error

    async def send(self, message: str) -> None:
        if json.loads(message)["op"] == Opcode.HEARTBEAT:
            raise self._error
        await super().send(message)


@pytest.mark.asyncio
async def test_heartbeat_transport_error_ends_session_and_stop_completes() -> None:
    dispatcher = LiveEventDispatcher()
    socket = FailingHeartbeatSocket([HELLO, READY], OSError("network unreachable"))
    gateway, _ = _gateway(socket, dispatcher)
    await gateway.start()

    await asyncio.wait_for(gateway.block(), timeout=1.0)
    assert not gateway.running

    await gateway.stop()
    assert socket.closed.is_set()


@pytest.mark.asyncio
async def test_unexpected_task_error_is_logged_and_teardown_finishes(
    caplog: pytest.LogCaptureFixture,
) -> None:
    socket = FailingHeartbeatSocket([HELLO, READY], RuntimeError("boom"))
    gateway, _ = _gateway(socket)
    await gateway.start()

    await asyncio.wait_for(gateway.block(), timeout=1.0)
    with caplog.at_level(logging.ERROR, logger="botkit.core.gateway"):
        await gateway.stop()

    assert "botkit-gateway-heartbeat failed" in caplog.text
    assert socket.closed.is_set()


class ClosedBeforeHelloSocket(ScriptedSocket):
    async def recv(self) -> str:
        raise ConnectionClosedOK(None, None)


@pytest.mark.asyncio
async def test_close_before_hello_raises_gateway_error() -> None:
    gateway, _ = _gateway(ClosedBeforeHelloSocket([]))

    with pytest.raises(GatewayError, match="handshake failed"):
        await gateway.start()
    await gateway.stop()


@pytest.mark.asyncio
async def test_connect_failure_raises_gateway_error() -> None:
    async def refuse(url: str) -> ScriptedSocket:
        raise ConnectionRefusedError("refused")

    gateway = AutoGateway(
        token="token",
        intents=GatewayIntents.GUILD_MESSAGES,
        rest_client=StubRest(),  # type: ignore[arg-type]
        event_dispatcher=LiveEventDispatcher(),
        connector=refuse,
    )

    with pytest.raises(GatewayError):
        await gateway.start()
    await gateway.stop()
