"""Per-round audit: check other nodes' submissions and vote.

An invalid submission gets an invalid vote, which opens an audit trigger
for it. A valid submission gets a valid vote only when someone already
opened a trigger; untriggered submissions stay trusted by default.

A submission is judged against the submitter's most recent earlier
submission. Nodes skip rounds in which their points did not change, so
that record may be several rounds back; a submitter with no earlier
record is on its first submission and passes.
"""

from __future__ import annotations

import json
from typing import Any

import bittensor as bt

from roundsplit.distribution.models import Submission, SubmissionSnapshot, VoteRecord
from roundsplit.distribution.store.interface import ExternalStorage, SubmissionSource, TaskTransport

from .submission_validator import SubmissionValidator


class AuditTask:
    """Votes on the round's submissions using the configured strategy."""

    def __init__(
        self,
        node_id: str,
        strategy: SubmissionValidator,
        submissions: SubmissionSource,
        storage: ExternalStorage,
        transport: TaskTransport,
        lookback_rounds: int = 100,
    ):
        self.node_id = node_id
        self.strategy = strategy
        self.submissions = submissions
        self.storage = storage
        self.transport = transport
        self.lookback_rounds = lookback_rounds

    async def run(self, round: int) -> dict[str, bool]:
        """Audit every other submitter of ``round``. Returns submitter -> verdict."""
        snapshot = await self.submissions.get_submissions(round)
        if snapshot is None:
            bt.logging.info({"audit_task": {"round": round, "status": "no_submissions"}})
            return {}

        verdicts: dict[str, bool] = {}
        for submitter_id in snapshot.submitters():
            if submitter_id == self.node_id:
                continue
            submission = snapshot.submissions[submitter_id]
            valid = await self.validate_node(submission, round)
            verdicts[submitter_id] = valid

            if not valid or submitter_id in snapshot.audit_triggers:
                await self.transport.record_vote(
                    round, submitter_id, VoteRecord(voter_id=self.node_id, is_valid=valid),
                )

        bt.logging.info({
            "audit_task": {
                "round": round,
                "audited": len(verdicts),
                "invalid": sum(1 for v in verdicts.values() if not v),
            }
        })
        return verdicts

    async def validate_node(self, submission: Submission, round: int) -> bool:
        """Apply the strategy; any lookup or decode failure is a fail."""
        try:
            submitted = await self._load_payload(submission.payload_reference)
            if submitted is None:
                bt.logging.warning({"audit_task": {"submitter": submission.node_id, "error": "payload_unavailable"}})
                return False

            previous = await self._previous_record(submission.node_id, round)
            if previous is None:
                bt.logging.debug({
                    "audit_task": {"round": round, "submitter": submission.node_id, "status": "first_submission"}
                })
                return True
            valid = self.strategy.is_valid(submitted, previous, previous.get("username"))
        except Exception as e:
            bt.logging.warning({"audit_task": {"submitter": submission.node_id, "error": str(e)}})
            return False

        bt.logging.debug({
            "audit_task": {"round": round, "submitter": submission.node_id, "strategy": self.strategy.name, "valid": valid}
        })
        return valid

    async def _load_payload(self, reference: str) -> dict[str, Any] | None:
        if not reference:
            return None
        raw = await self.storage.get_payload(reference)
        if raw is None:
            return None
        data = json.loads(raw)
        return data if isinstance(data, dict) else None

    async def _previous_record(self, submitter_id: str, round: int) -> dict[str, Any] | None:
        """The submitter's most recent payload before ``round``.

        Looks back at most ``lookback_rounds`` rounds. Returns None when
        there is no earlier submission; raises ValueError when there is one
        but its payload cannot be loaded.
        """
        oldest = max(0, round - self.lookback_rounds)
        for earlier in range(round - 1, oldest - 1, -1):
            snapshot: SubmissionSnapshot | None = await self.submissions.get_submissions(earlier)
            if snapshot is None or submitter_id not in snapshot.submissions:
                continue
            record = await self._load_payload(snapshot.submissions[submitter_id].payload_reference)
            if record is None:
                raise ValueError(f"payload for round {earlier} unavailable")
            return record
        return None


__all__ = ["AuditTask"]
