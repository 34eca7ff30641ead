"""
REST transport for the platform HTTP API.

Only the handful of endpoints the bootstrap and the bundled modules need are
wrapped here; the client is an opaque, reusable handle that modules receive
through ``BotContext``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://discord.com/api/v10"
DEFAULT_USER_AGENT = "DiscordBot (https://github.com/botkit/botkit, 0.1.0)"


class RestError(RuntimeError):
    """Raised when a REST call fails or returns an error status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RestClient:
    """Thin async client around ``httpx.AsyncClient`` with bot authentication."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise RestError("A bot token is required.")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bot {token}",
                "User-Agent": DEFAULT_USER_AGENT,
            },
        )

    @classmethod
    def default(cls, token: str) -> RestClient:
        """Build a client with the default API base URL and timeouts."""
        return cls(token)

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def get_gateway_bot(self) -> dict[str, Any]:
        """Return the gateway URL and session start limits for this bot."""
        return await self._request("GET", "/gateway/bot")

    async def create_message(self, channel_id: str, content: str) -> dict[str, Any]:
        """Post a plain text message to ``channel_id``."""
        return await self._request(
            "POST", f"/channels/{channel_id}/messages", json={"content": content}
        )

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()
            logger.debug("REST client closed.")

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise RestError(f"{method} {path} failed: {exc}") from exc
        if response.is_error:
            raise RestError(
                f"{method} {path} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        return response.json()
