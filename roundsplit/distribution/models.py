"""Pydantic models for per-round reward/penalty distribution.

Every node builds these from the same round snapshot, so anything that
feeds DistributionCalculator must serialize and compare the same way on
every host:
- SubmissionSnapshot: who submitted this round and which submissions were audited
- StakeLedger: collateral per node plus the bounty for the round
- DistributionList: the signed NodeId -> amount mapping nodes agree on
"""

from __future__ import annotations

import json
import math
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator


# ---------------------------------------------------------------------------
# Wire constants - must match on every node in the network
# ---------------------------------------------------------------------------

SLASH_FRACTION = 0.7
MAX_REWARD_PER_PLAYER = 25

Amount = int | float


class MalformedPeerClaim(ValueError):
    """A peer's distribution list could not be decoded."""


class InvalidClaimAmount(ValueError):
    """A peer's decoded list holds a key or amount no computed list can contain."""


# ---------------------------------------------------------------------------
# Submission snapshot
# ---------------------------------------------------------------------------


class Submission(BaseModel):
    """A node's submission for one round."""

    node_id: str = Field(min_length=1)
    round: int = Field(ge=0)
    payload_reference: str = ""


class VoteRecord(BaseModel):
    """One peer's audit opinion of a submission."""

    voter_id: str
    is_valid: bool


class AuditTrigger(BaseModel):
    """Present only for submissions selected for audit.

    Absence of a trigger means no audit occurred. Vote order carries no
    meaning, only the net sign of valid minus invalid.
    """

    submitter_id: str
    votes: list[VoteRecord] = Field(default_factory=list)


class SubmissionSnapshot(BaseModel):
    """Read-only view of a closed round's submissions and audit votes."""

    round: int = Field(ge=0)
    submissions: dict[str, Submission] = Field(default_factory=dict)
    audit_triggers: dict[str, AuditTrigger] = Field(default_factory=dict)

    def submitters(self) -> list[str]:
        """Submitting node ids in deterministic (sorted) order."""
        return sorted(self.submissions)


# ---------------------------------------------------------------------------
# Stake ledger
# ---------------------------------------------------------------------------


class StakeEntry(BaseModel):
    node_id: str
    stake_amount: float = Field(ge=0)


class StakeLedger(BaseModel):
    """Stake per node and the bounty available for a round."""

    entries: dict[str, StakeEntry] = Field(default_factory=dict)
    bounty_per_round: float = Field(ge=0)

    def stake_of(self, node_id: str) -> float:
        entry = self.entries.get(node_id)
        return entry.stake_amount if entry is not None else 0

    def has_node(self, node_id: str) -> bool:
        return node_id in self.entries


# ---------------------------------------------------------------------------
# Distribution list
# ---------------------------------------------------------------------------


def normalize_amount(value: Amount) -> Amount:
    """Collapse integral floats to ``int`` so 35.0 and 35 serialize alike."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class DistributionList(BaseModel):
    """Signed NodeId -> amount mapping for one round.

    Positive amounts are rewards, negative amounts are slashes. Nodes
    with neither are absent rather than zero. Instances are frozen and
    ``amounts`` is a read-only view; use ``as_dict()`` for a mutable copy.
    """

    model_config = ConfigDict(frozen=True)

    round: int = Field(ge=0)
    amounts: Mapping[str, Amount] = Field(default_factory=dict, validate_default=True)

    @field_validator("amounts", mode="before")
    @classmethod
    def _check_amounts(cls, value: Any) -> dict[str, Amount]:
        if not isinstance(value, Mapping):
            raise ValueError("amounts must be a mapping")
        checked: dict[str, Amount] = {}
        for key, amount in value.items():
            if not isinstance(key, str) or not key:
                raise ValueError(f"invalid node id: {key!r}")
            if isinstance(amount, bool) or not isinstance(amount, (int, float)):
                raise ValueError(f"amount for {key} is not a number: {amount!r}")
            if not math.isfinite(amount):
                raise ValueError(f"amount for {key} is not finite")
            checked[key] = normalize_amount(amount)
        return checked

    @field_validator("amounts", mode="after")
    @classmethod
    def _freeze_amounts(cls, value: Mapping[str, Amount]) -> Mapping[str, Amount]:
        return MappingProxyType(dict(value))

    @field_serializer("amounts")
    def _serialize_amounts(self, value: Mapping[str, Amount]) -> dict[str, Amount]:
        return dict(value)

    def __len__(self) -> int:
        return len(self.amounts)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.amounts

    def get(self, node_id: str) -> Amount | None:
        return self.amounts.get(node_id)

    def is_empty(self) -> bool:
        return not self.amounts

    def as_dict(self) -> dict[str, Amount]:
        """A copy of the mapping, safe to hand to callers."""
        return dict(self.amounts)

    def rewards(self) -> dict[str, Amount]:
        return {k: v for k, v in self.amounts.items() if v > 0}

    def slashes(self) -> dict[str, Amount]:
        return {k: v for k, v in self.amounts.items() if v < 0}

    def to_wire(self) -> str:
        """Flat JSON object of NodeId -> amount, keys sorted."""
        return json.dumps(self.as_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_wire(cls, raw: str | bytes | Mapping[str, Any], round: int) -> DistributionList:
        """Decode a peer's claimed list.

        Raises:
            MalformedPeerClaim: if ``raw`` cannot be decoded or is not a
                mapping.
            InvalidClaimAmount: if it decodes to a mapping whose keys or
                amounts are not node ids and finite numbers.
        """
        data: Any = raw
        if isinstance(raw, (bytes, bytearray)):
            try:
                data = raw.decode()
            except UnicodeDecodeError as e:
                raise MalformedPeerClaim(f"undecodable bytes: {e}") from e
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise MalformedPeerClaim(f"invalid json: {e}") from e
        if not isinstance(data, Mapping):
            raise MalformedPeerClaim(f"expected a mapping, got {type(data).__name__}")
        try:
            return cls(round=round, amounts=dict(data))
        except ValidationError as e:
            raise InvalidClaimAmount(str(e)) from e


__all__ = [
    "MAX_REWARD_PER_PLAYER",
    "SLASH_FRACTION",
    "Amount",
    "AuditTrigger",
    "DistributionList",
    "InvalidClaimAmount",
    "MalformedPeerClaim",
    "StakeEntry",
    "StakeLedger",
    "Submission",
    "SubmissionSnapshot",
    "VoteRecord",
    "normalize_amount",
]
