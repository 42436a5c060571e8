"""Deterministic distribution computation shared by every node.

This is the CRITICAL SHARED CODE PATH. A node submitting its
distribution list and a node auditing a peer's list both call
compute_distribution() on the same round snapshot, and agreement is
reached only if both produce identical mappings. No randomness, no wall
clock, no dependence on mapping iteration order.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field

import bittensor as bt

from .hashing import compute_hash
from .models import (
    MAX_REWARD_PER_PLAYER,
    Amount,
    DistributionList,
    StakeLedger,
    SubmissionSnapshot,
)
from .slash import SlashCalculator
from .store.interface import StakeLedgerSource, SubmissionSource
from .tally import Verdict, VoteTally


@dataclass
class DistributionResult:
    """Output of compute_distribution with its audit trail."""

    round: int
    distribution: DistributionList
    data_available: bool = True
    fetch_failed: bool = False  # a collaborator raised or timed out

    # Intermediate values for audit trail
    reward_candidates: list[str] = field(default_factory=list)
    slash_targets: list[str] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)
    reward_per_candidate: int = 0

    @classmethod
    def unavailable(cls, round: int, fetch_failed: bool = False) -> DistributionResult:
        return cls(
            round=round,
            distribution=DistributionList(round=round),
            data_available=False,
            fetch_failed=fetch_failed,
        )


def compute_reward(bounty: float, n_candidates: int) -> int:
    """Equal share of the bounty, floored, capped at MAX_REWARD_PER_PLAYER."""
    if n_candidates <= 0:
        return 0
    reward = math.floor(bounty / n_candidates)
    return min(reward, MAX_REWARD_PER_PLAYER)


def compute_distribution(
    snapshot: SubmissionSnapshot,
    ledger: StakeLedger,
    tally: VoteTally | None = None,
    slasher: SlashCalculator | None = None,
) -> DistributionResult:
    """Build the distribution list for one round.

    Steps:
    1. Partition submitters by audit verdict (no trigger -> trusted)
    2. Slash every FAIL submitter by SLASH_FRACTION of their stake
    3. Split the bounty equally across PASS submitters, capped per player
    4. PENDING submitters (tied votes) get nothing either way

    Args:
        snapshot: Submissions and audit triggers for the round.
        ledger: Stake per node and the round's bounty.

    Returns:
        DistributionResult with the list and the partition that produced it.
    """
    tally = tally or VoteTally()
    slasher = slasher or SlashCalculator()
    result = DistributionResult(round=snapshot.round, distribution=DistributionList(round=snapshot.round))

    # Step 1: Partition (deterministic order: sorted by node id)
    for node_id in snapshot.submitters():
        verdict = tally.verdict(snapshot.audit_triggers.get(node_id))
        if verdict is Verdict.PASS:
            result.reward_candidates.append(node_id)
        elif verdict is Verdict.FAIL:
            result.slash_targets.append(node_id)
        else:
            result.excluded.append(node_id)

    amounts: dict[str, Amount] = {}

    # Step 2: Slash
    for node_id in result.slash_targets:
        stake = ledger.stake_of(node_id)
        if stake <= 0:
            bt.logging.debug({
                "distribution_slash_skipped": {
                    "round": snapshot.round,
                    "node": node_id,
                    "reason": "no_ledger_entry" if not ledger.has_node(node_id) else "zero_stake",
                }
            })
            continue
        amounts[node_id] = slasher.penalty(stake)

    # Step 3: Reward (skipped entirely with no candidates)
    if result.reward_candidates:
        reward = compute_reward(ledger.bounty_per_round, len(result.reward_candidates))
        result.reward_per_candidate = reward
        for node_id in result.reward_candidates:
            amounts[node_id] = reward

    result.distribution = DistributionList(round=snapshot.round, amounts=amounts)
    return result


class DistributionCalculator:
    """Fetches a round's inputs and runs compute_distribution().

    Any failure or timeout while fetching resolves to "data unavailable"
    and an empty list; callers never see a partial result.
    """

    def __init__(
        self,
        submissions: SubmissionSource,
        stakes: StakeLedgerSource,
        fetch_timeout: float | None = 30.0,
        tally: VoteTally | None = None,
        slasher: SlashCalculator | None = None,
    ):
        self.submissions = submissions
        self.stakes = stakes
        self.fetch_timeout = fetch_timeout
        self.tally = tally or VoteTally()
        self.slasher = slasher or SlashCalculator()

    async def compute(self, round: int) -> DistributionList:
        """Distribution list for ``round`` (empty when inputs are missing)."""
        result = await self.compute_result(round)
        return result.distribution

    async def compute_result(self, round: int) -> DistributionResult:
        bt.logging.debug({"distribution": {"round": round, "status": "computing"}})

        snapshot, failed = await self._fetch(
            "submissions", SubmissionSnapshot, self.submissions.get_submissions, round,
        )
        if snapshot is None:
            bt.logging.info({"distribution": {"round": round, "status": "no_submissions"}})
            return DistributionResult.unavailable(round, fetch_failed=failed)
        if snapshot.round != round:
            bt.logging.warning({
                "distribution": {"round": round, "status": "round_mismatch", "snapshot_round": snapshot.round}
            })
            return DistributionResult.unavailable(round, fetch_failed=True)

        ledger, failed = await self._fetch("stake_ledger", StakeLedger, self.stakes.get_stake_ledger)
        if ledger is None:
            bt.logging.warning({"distribution": {"round": round, "status": "no_stake_ledger"}})
            return DistributionResult.unavailable(round, fetch_failed=failed)

        try:
            result = compute_distribution(snapshot, ledger, self.tally, self.slasher)
        except Exception as e:
            bt.logging.error({"distribution": {"round": round, "status": "compute_error", "error": str(e)}})
            return DistributionResult.unavailable(round, fetch_failed=True)

        bt.logging.info({
            "distribution": {
                "round": round,
                "rewarded": len(result.reward_candidates),
                "slashed": len(result.distribution.slashes()),
                "excluded": len(result.excluded),
                "reward": result.reward_per_candidate,
                "fingerprint": compute_hash(result.distribution.as_dict())[:16],
            }
        })
        return result

    async def _fetch(self, what: str, model, getter, *args):
        """Await a collaborator call, coercing raw mappings into ``model``.

        Returns ``(data, failed)``; ``failed`` is set when the call raised,
        timed out or returned something that does not validate.
        """
        try:
            pending = getter(*args)
            if self.fetch_timeout is None:
                data = await pending
            else:
                data = await asyncio.wait_for(pending, timeout=self.fetch_timeout)
            if data is None or isinstance(data, model):
                return data, False
            return model.model_validate(data), False
        except asyncio.TimeoutError:
            bt.logging.warning({"distribution_fetch": {"source": what, "error": "timeout"}})
            return None, True
        except Exception as e:
            bt.logging.warning({"distribution_fetch": {"source": what, "error": str(e)}})
            return None, True


__all__ = [
    "DistributionCalculator",
    "DistributionResult",
    "compute_distribution",
    "compute_reward",
]
