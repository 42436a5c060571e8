"""Collaborator protocols injected into the distribution core and tasks.

Implementations: FilesystemStore (local/shared directory). Anything that
talks to a chain, an IPFS gateway or a node's key-value namespace only has
to satisfy the protocol it stands in for.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from roundsplit.distribution.models import (
    DistributionList,
    StakeLedger,
    Submission,
    SubmissionSnapshot,
    VoteRecord,
)


@runtime_checkable
class SubmissionSource(Protocol):
    """Read-only per-round submissions and audit votes."""

    async def get_submissions(self, round: int) -> SubmissionSnapshot | None:
        """Snapshot for ``round``, or None when the round has no data."""
        ...


@runtime_checkable
class StakeLedgerSource(Protocol):
    """Read-only stake list and bounty."""

    async def get_stake_ledger(self) -> StakeLedger | None:
        ...


@runtime_checkable
class PeerClaimSource(Protocol):
    """Where peers' claimed distribution lists are read from."""

    async def get_peer_distribution_list(
        self, peer_id: str, round: int,
    ) -> str | bytes | Mapping[str, Any] | None:
        """Raw claimed list (JSON text or mapping), or None if absent."""
        ...

    async def list_distribution_submitters(self, round: int) -> list[str]:
        """Node ids that uploaded a distribution list for ``round``."""
        ...


@runtime_checkable
class StateStore(Protocol):
    """Node-local key-value cache (one namespace per node)."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


@runtime_checkable
class ExternalStorage(Protocol):
    """Content-addressed payload storage."""

    async def put_payload(self, data: bytes) -> str:
        """Store ``data``. Returns its content reference."""
        ...

    async def get_payload(self, reference: str) -> bytes | None:
        ...


@runtime_checkable
class TaskTransport(Protocol):
    """Round-scoped writes a node makes to the shared task state."""

    async def submit(self, submission: Submission) -> None:
        ...

    async def record_vote(self, round: int, submitter_id: str, vote: VoteRecord) -> None:
        ...

    async def upload_distribution_list(self, node_id: str, distribution: DistributionList) -> None:
        ...

    async def record_distribution_vote(
        self, round: int, submitter_id: str, vote: VoteRecord,
    ) -> None:
        ...


__all__ = [
    "ExternalStorage",
    "PeerClaimSource",
    "StakeLedgerSource",
    "StateStore",
    "SubmissionSource",
    "TaskTransport",
]
