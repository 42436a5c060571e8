"""HTTP client for the upstream player activity endpoint."""

from __future__ import annotations

import asyncio
from typing import Any

import bittensor as bt
import httpx


class PlayerDataClient:
    """Fetches the full player list; one retry when the first try is empty."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        retry_delay: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.retry_delay = retry_delay
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_players(self) -> list[dict[str, Any]]:
        """Player records, or ``[]`` when both attempts come back empty."""
        players = await self._request()
        if players:
            return players

        bt.logging.info({"player_client": {"status": "empty_first_attempt", "retry_in": self.retry_delay}})
        await asyncio.sleep(self.retry_delay)
        return await self._request()

    async def _request(self) -> list[dict[str, Any]]:
        try:
            resp = await self._client.post(self.url, json={})
        except httpx.HTTPError as e:
            bt.logging.warning({"player_client": {"error": str(e)}})
            return []

        if resp.status_code != 200:
            bt.logging.warning({"player_client": {"status_code": resp.status_code, "reason": resp.reason_phrase}})
            return []

        try:
            data = resp.json()
        except ValueError as e:
            bt.logging.warning({"player_client": {"error": f"invalid json: {e}"}})
            return []

        if not isinstance(data, list):
            return []
        return [p for p in data if isinstance(p, dict)]


def find_player(players: list[dict[str, Any]], username: str) -> dict[str, Any] | None:
    return next((p for p in players if p.get("username") == username), None)


__all__ = ["PlayerDataClient", "find_player"]
