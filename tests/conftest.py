from __future__ import annotations

import asyncio
import textwrap
from pathlib import Path
from typing import Any

import pytest

import botkit.bootstrap as bootstrap_module
from botkit.core.dispatcher import LiveEventDispatcher
from botkit.core.intents import GatewayIntents


def _write_yaml(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


class FakeRestClient:
    """Stands in for ``RestClient``; records posted messages."""

    instances: list[FakeRestClient] = []

    def __init__(self, token: str) -> None:
        self.token = token
        self.messages: list[tuple[str, str]] = []
        self.closed = False
        self.gateway_url = "wss://gateway.example.test"

    @classmethod
    def default(cls, token: str) -> FakeRestClient:
        client = cls(token)
        cls.instances.append(client)
        return client

    async def get_gateway_bot(self) -> dict[str, Any]:
        return {"url": self.gateway_url}

    async def create_message(self, channel_id: str, content: str) -> dict[str, Any]:
        self.messages.append((channel_id, content))
        return {"id": "1", "channel_id": channel_id, "content": content}

    async def aclose(self) -> None:
        self.closed = True


class FakeGateway:
    """Records lifecycle calls instead of opening a websocket."""

    instances: list[FakeGateway] = []
    fail_on_start: Exception | None = None
    fail_on_block: Exception | None = None

    def __init__(
        self,
        *,
        token: str,
        intents: GatewayIntents,
        rest_client: FakeRestClient,
        event_dispatcher: LiveEventDispatcher,
    ) -> None:
        self.token = token
        self.intents = intents
        self.rest_client = rest_client
        self.dispatcher = event_dispatcher
        self.calls: list[str] = []
        FakeGateway.instances.append(self)

    async def start(self) -> None:
        self.calls.append("start")
        if self.fail_on_start is not None:
            raise self.fail_on_start

    async def block(self) -> None:
        self.calls.append("block")
        if self.fail_on_block is not None:
            raise self.fail_on_block
        await asyncio.sleep(0)

    def request_stop(self) -> None:
        self.calls.append("request_stop")

    async def stop(self) -> None:
        self.calls.append("stop")
        await self.dispatcher.close()


@pytest.fixture
def fake_transports(
    monkeypatch: pytest.MonkeyPatch,
) -> tuple[type[FakeRestClient], type[FakeGateway]]:
    """Replace the REST client and gateway used by ``bot()`` with recorders."""

    monkeypatch.setattr(FakeRestClient, "instances", [])
    monkeypatch.setattr(FakeGateway, "instances", [])
    monkeypatch.setattr(FakeGateway, "fail_on_start", None)
    monkeypatch.setattr(FakeGateway, "fail_on_block", None)
    monkeypatch.setattr(bootstrap_module, "RestClient", FakeRestClient)
    monkeypatch.setattr(bootstrap_module, "AutoGateway", FakeGateway)
    return FakeRestClient, FakeGateway


@pytest.fixture
def sample_config_dir(tmp_path: Path) -> Path:
    """Provide a temporary configuration directory for tests."""

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    log_file = tmp_path / "logs" / "bot.log"
    config_yaml = f"""
    logging:
      level: "debug"
      file: "{log_file.as_posix()}"
      max_mb: 5

    modules:
      - module: "modules.ping"
        options:
          trigger: "!hello"
          response: "hi"
      - module: "modules.member_log"
        enabled: false
      - module: "modules.message_audit"
        options:
          guild_ids: ["100", 200]
    """
    secrets_yaml = """
    bot:
      token: "secret-token"
    """
    _write_yaml(config_dir / "config.yaml", config_yaml)
    _write_yaml(config_dir / "secrets.yaml", secrets_yaml)
    return config_dir
