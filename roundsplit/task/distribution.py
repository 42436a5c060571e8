"""Submitting this node's distribution list and auditing peers' lists."""

from __future__ import annotations

import bittensor as bt

from roundsplit.distribution.compute_distribution import DistributionCalculator
from roundsplit.distribution.models import DistributionList, VoteRecord
from roundsplit.distribution.store.interface import PeerClaimSource, TaskTransport
from roundsplit.distribution.validator import DistributionValidator


class DistributionTask:
    def __init__(
        self,
        node_id: str,
        calculator: DistributionCalculator,
        validator: DistributionValidator,
        peer_claims: PeerClaimSource,
        transport: TaskTransport,
    ):
        self.node_id = node_id
        self.calculator = calculator
        self.validator = validator
        self.peer_claims = peer_claims
        self.transport = transport

    async def submit_distribution_list(self, round: int) -> DistributionList | None:
        """Compute and upload the list; an empty list is not uploaded."""
        distribution = await self.calculator.compute(round)
        if distribution.is_empty():
            bt.logging.info({"distribution_task": {"round": round, "status": "empty_list_not_submitted"}})
            return None

        await self.transport.upload_distribution_list(self.node_id, distribution)
        bt.logging.info({
            "distribution_task": {"round": round, "status": "submitted", "entries": len(distribution)}
        })
        return distribution

    async def audit_distribution(self, round: int) -> dict[str, bool]:
        """Validate every peer's claimed list for ``round`` and vote on it."""
        verdicts: dict[str, bool] = {}
        for peer_id in sorted(await self.peer_claims.list_distribution_submitters(round)):
            if peer_id == self.node_id:
                continue
            valid = await self.validator.validate(peer_id, round)
            verdicts[peer_id] = valid
            await self.transport.record_distribution_vote(
                round, peer_id, VoteRecord(voter_id=self.node_id, is_valid=valid),
            )

        bt.logging.info({
            "distribution_audit": {
                "round": round,
                "checked": len(verdicts),
                "rejected": sorted(k for k, v in verdicts.items() if not v),
            }
        })
        return verdicts


__all__ = ["DistributionTask"]
