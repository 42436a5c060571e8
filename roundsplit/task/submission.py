"""Per-round submission: fetch this node's player record, cache it, submit.

The record is cached under ``player_data_{username}_{round}`` only when
``total_points`` changed since the previous round (or no previous record
exists). A round with nothing cached produces no submission.
"""

from __future__ import annotations

import json
from typing import Any

import bittensor as bt

from roundsplit.distribution.models import Submission
from roundsplit.distribution.store.interface import ExternalStorage, StateStore, TaskTransport

from .player_client import PlayerDataClient, find_player


def cache_key(username: str, round: int) -> str:
    return f"player_data_{username}_{round}"


class SubmissionTask:
    """Produces this node's submission for a round."""

    def __init__(
        self,
        node_id: str,
        username: str | None,
        players: PlayerDataClient,
        state: StateStore,
        storage: ExternalStorage,
        transport: TaskTransport,
    ):
        self.node_id = node_id
        self.username = username
        self.players = players
        self.state = state
        self.storage = storage
        self.transport = transport

    async def run(self, round: int) -> Submission | None:
        bt.logging.info({"submission_task": {"round": round, "status": "started"}})
        if not self.username:
            bt.logging.error({"submission_task": "no username configured"})
            return None

        players = await self.players.fetch_players()
        if not players:
            bt.logging.info({"submission_task": {"round": round, "status": "no_player_data"}})
            return None

        player = find_player(players, self.username)
        if player is None:
            bt.logging.info({"submission_task": {"round": round, "status": "player_not_found", "username": self.username}})
            return None

        updated = await self.cache_if_updated(player, round)
        bt.logging.info({"submission_task": {"round": round, "username": self.username, "updated": updated}})

        return await self.submit(round)

    async def cache_if_updated(self, player: dict[str, Any], round: int) -> bool:
        """Cache ``player`` for ``round`` unless points are unchanged since round-1."""
        username = player["username"]
        previous = await self.state.get(cache_key(username, round - 1))
        if previous is not None:
            try:
                previous_record = json.loads(previous)
            except json.JSONDecodeError:
                previous_record = None
            if previous_record is not None and previous_record.get("total_points") == player.get("total_points"):
                return False

        await self.state.set(cache_key(username, round), json.dumps(player, sort_keys=True))
        return True

    async def submit(self, round: int) -> Submission | None:
        """Store the cached record as the payload and submit its reference."""
        value = await self.state.get(cache_key(self.username, round))
        if value is None:
            bt.logging.warning({"submission_task": {"round": round, "status": "nothing_to_submit"}})
            return None

        reference = await self.storage.put_payload(value.encode())
        submission = Submission(node_id=self.node_id, round=round, payload_reference=reference)
        await self.transport.submit(submission)
        bt.logging.info({"submission_task": {"round": round, "status": "submitted", "payload_reference": reference}})
        return submission


__all__ = ["SubmissionTask", "cache_key"]
