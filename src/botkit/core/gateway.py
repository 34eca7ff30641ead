"""
Realtime gateway connection.

``AutoGateway`` speaks the JSON gateway protocol over a websocket: it waits
for HELLO, identifies with the computed intents, keeps the heartbeat going,
and forwards DISPATCH payloads to the event dispatcher. Reconnection and
resume are not handled; a RECONNECT or INVALID_SESSION request ends the run.
"""

from __future__ import annotations

import asyncio
import json
import logging
import platform
from collections.abc import Awaitable, Callable
from enum import IntEnum
from typing import Any, Protocol

import websockets
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from .dispatcher import LiveEventDispatcher
from .intents import GatewayIntents
from .rest import RestClient

logger = logging.getLogger(__name__)

GATEWAY_VERSION = 10


class GatewayError(RuntimeError):
    """Raised when the gateway session cannot be established."""


class Opcode(IntEnum):
    DISPATCH = 0
    HEARTBEAT = 1
    IDENTIFY = 2
    RECONNECT = 7
    INVALID_SESSION = 9
    HELLO = 10
    HEARTBEAT_ACK = 11


class GatewayPayload(BaseModel):
    """Envelope of every gateway frame."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    op: int
    d: Any = Field(default=None)
    s: int | None = Field(default=None)
    t: str | None = Field(default=None)


class GatewaySocket(Protocol):
    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[GatewaySocket]]


async def _websockets_connector(url: str) -> GatewaySocket:
    return await websockets.connect(url, max_size=None)


class AutoGateway:
    """Single gateway session bound to one dispatcher."""

    def __init__(
        self,
        *,
        token: str,
        intents: GatewayIntents,
        rest_client: RestClient,
        event_dispatcher: LiveEventDispatcher,
        connector: Connector | None = None,
        ready_timeout: float = 30.0,
    ) -> None:
        self._token = token
        self.intents = intents
        self._rest = rest_client
        self._dispatcher = event_dispatcher
        self._connector = connector or _websockets_connector
        self._ready_timeout = ready_timeout
        self._socket: GatewaySocket | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()
        self._started = False
        self._stopped = False
        self._sequence: int | None = None
        self._session_id: str | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def sequence(self) -> int | None:
        return self._sequence

    @property
    def running(self) -> bool:
        return self._started and not self._closed.is_set()

    async def start(self) -> None:
        """Connect, identify, and wait for READY."""
        if self._started:
            logger.warning("Gateway already started.")
            return
        if self._stopped:
            raise GatewayError("Gateway was stopped and cannot be restarted.")
        self._started = True
        info = await self._rest.get_gateway_bot()
        base_url = info.get("url")
        if not base_url:
            raise GatewayError("REST API did not return a gateway URL.")
        url = f"{base_url}/?v={GATEWAY_VERSION}&encoding=json"
        logger.info("Connecting to gateway %s", base_url)
        try:
            self._socket = await self._connector(url)
            hello = await self._receive()
            if hello is None or hello.op != Opcode.HELLO:
                raise GatewayError("Gateway did not send HELLO.")
            interval = float(hello.d["heartbeat_interval"]) / 1000.0
            self._heartbeat_task = asyncio.create_task(
                self._heartbeat_loop(interval), name="botkit-gateway-heartbeat"
            )
            await self._identify()
        except (OSError, WebSocketException) as exc:
            raise GatewayError(f"Gateway handshake failed: {exc!r}") from exc
        self._reader_task = asyncio.create_task(self._read_loop(), name="botkit-gateway-reader")

        ready_waiter = asyncio.create_task(self._ready.wait())
        closed_waiter = asyncio.create_task(self._closed.wait())
        try:
            await asyncio.wait(
                {ready_waiter, closed_waiter},
                timeout=self._ready_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            ready_waiter.cancel()
            closed_waiter.cancel()
        if not self._ready.is_set():
            if self._closed.is_set():
                raise GatewayError("Gateway closed before the session became ready.")
            raise GatewayError(f"Gateway not ready after {self._ready_timeout:.1f}s.")
        logger.info(
            "Gateway session %s established with intents %d", self._session_id, self.intents
        )

    async def block(self) -> None:
        """Suspend until the connection closes or ``request_stop`` is called."""
        if not self._started:
            return
        await self._closed.wait()

    def request_stop(self) -> None:
        """Release ``block`` so the owner can proceed to ``stop``."""
        if not self._closed.is_set():
            logger.info("Gateway stop requested.")
            self._closed.set()

    async def stop(self) -> None:
        """Tear the session down. Safe to call repeatedly and before ``start``."""
        if self._stopped:
            return
        self._stopped = True
        self._closed.set()
        for task in (self._heartbeat_task, self._reader_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Gateway task %s failed.", task.get_name())
        self._heartbeat_task = None
        self._reader_task = None
        if self._socket is not None:
            try:
                await self._socket.close()
            except ConnectionClosed:
                pass
            except OSError as exc:
                logger.warning("Error closing gateway socket: %s", exc)
            self._socket = None
        await self._dispatcher.close()
        if self._started:
            logger.info("Gateway stopped.")

    async def _identify(self) -> None:
        await self._send(
            Opcode.IDENTIFY,
            {
                "token": self._token,
                "intents": int(self.intents),
                "properties": {
                    "os": platform.system().lower(),
                    "browser": "botkit",
                    "device": "botkit",
                },
            },
        )

    async def _send(self, op: Opcode, data: Any) -> None:
        if self._socket is None:
            raise GatewayError("Gateway socket is not connected.")
        await self._socket.send(json.dumps({"op": int(op), "d": data}))

    async def _receive(self) -> GatewayPayload | None:
        if self._socket is None:
            return None
        raw = await self._socket.recv()
        try:
            return GatewayPayload.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            raise GatewayError(f"Malformed gateway frame: {exc}") from exc

    async def _heartbeat_loop(self, interval: float) -> None:
        try:
            while not self._closed.is_set():
                await asyncio.sleep(interval)
                await self._send(Opcode.HEARTBEAT, self._sequence)
                logger.debug("Heartbeat sent (seq=%s)", self._sequence)
        except ConnectionClosed:
            logger.warning("Heartbeat stopped; gateway connection closed.")
        except OSError as exc:
            logger.error("Heartbeat failed: %s", exc)
        finally:
            self._closed.set()

    async def _read_loop(self) -> None:
        try:
            while not self._closed.is_set():
                payload = await self._receive()
                if payload is None:
                    break
                if not await self._handle(payload):
                    break
        except ConnectionClosed as exc:
            logger.info("Gateway connection closed: %s", exc)
        except (GatewayError, OSError):
            logger.exception("Gateway reader stopped.")
        finally:
            self._closed.set()

    async def _handle(self, payload: GatewayPayload) -> bool:
        """Process one frame; return ``False`` when the session must end."""
        if payload.op == Opcode.DISPATCH:
            if payload.s is not None:
                self._sequence = payload.s
            if payload.t == "READY" and isinstance(payload.d, dict):
                self._session_id = payload.d.get("session_id")
                self._ready.set()
            if payload.t:
                await self._dispatcher.dispatch(payload.t, payload.d)
            return True
        if payload.op == Opcode.HEARTBEAT:
            await self._send(Opcode.HEARTBEAT, self._sequence)
            return True
        if payload.op == Opcode.HEARTBEAT_ACK:
            logger.debug("Heartbeat acknowledged.")
            return True
        if payload.op in (Opcode.RECONNECT, Opcode.INVALID_SESSION):
            logger.warning(
                "Gateway requested %s; ending session.", Opcode(payload.op).name
            )
            return False
        logger.debug("Ignoring gateway opcode %s", payload.op)
        return True
