"""Reduce audit votes to a pass/fail/pending verdict."""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from .models import AuditTrigger, VoteRecord


class Verdict(str, Enum):
    """Outcome of a submitter's audit for one round."""

    PASS = "pass"  # reward candidate
    FAIL = "fail"  # slash target
    PENDING = "pending"  # tied vote, neither rewarded nor slashed


class VoteTally:
    """Net score of valid minus invalid votes."""

    def tally(self, votes: Iterable[VoteRecord]) -> int:
        net = 0
        for vote in votes:
            net += 1 if vote.is_valid else -1
        return net

    def verdict(self, trigger: AuditTrigger | None) -> Verdict:
        """Classify a submitter.

        No trigger means no audit took place and the submission is trusted.
        A trigger with an empty vote set is treated as a failed audit.
        """
        if trigger is None:
            return Verdict.PASS

        votes = trigger.votes
        if not votes:
            return Verdict.FAIL

        net = self.tally(votes)
        if net > 0:
            return Verdict.PASS
        if net < 0:
            return Verdict.FAIL
        return Verdict.PENDING


__all__ = ["Verdict", "VoteTally"]
