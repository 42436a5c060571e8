"""Validation of a peer's claimed distribution list by recomputation.

The validator never trusts the peer's numbers: it recomputes the list
from the same round snapshot and compares the two mappings key by key.
Comparison is on decoded mappings, never on serialized byte order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import bittensor as bt

from .compute_distribution import DistributionCalculator
from .hashing import compute_hash
from .models import Amount, DistributionList, InvalidClaimAmount, MalformedPeerClaim
from .store.interface import PeerClaimSource


@dataclass
class DistributionDiff:
    """Key-level differences between a claimed and a computed list."""

    missing: list[str] = field(default_factory=list)  # computed but not claimed
    extra: list[str] = field(default_factory=list)  # claimed but not computed
    mismatched: dict[str, tuple[Amount, Amount]] = field(default_factory=dict)  # key -> (claimed, computed)

    def __bool__(self) -> bool:
        return bool(self.missing or self.extra or self.mismatched)


def _amounts(dist: DistributionList | Mapping[str, Amount]) -> Mapping[str, Amount]:
    return dist.amounts if isinstance(dist, DistributionList) else dist


def diff_distributions(
    claimed: DistributionList | Mapping[str, Amount],
    computed: DistributionList | Mapping[str, Amount],
) -> DistributionDiff:
    """Compare as key sets plus per-key values. Output lists are sorted."""
    a = _amounts(claimed)
    b = _amounts(computed)
    diff = DistributionDiff(
        missing=sorted(set(b) - set(a)),
        extra=sorted(set(a) - set(b)),
    )
    for key in sorted(set(a) & set(b)):
        if a[key] != b[key]:
            diff.mismatched[key] = (a[key], b[key])
    return diff


def distributions_equal(
    a: DistributionList | Mapping[str, Amount],
    b: DistributionList | Mapping[str, Amount],
) -> bool:
    """Exact equality: same key count, same keys, identical values."""
    left = _amounts(a)
    right = _amounts(b)
    if len(left) != len(right):
        return False
    for key, value in left.items():
        if key not in right or right[key] != value:
            return False
    return True


@dataclass
class ValidationResult:
    """Outcome of validating one peer's claim."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    evidence: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.valid


class DistributionValidator:
    """Recomputes a round and checks a peer's claimed list against it.

    ``accept_missing_claim`` decides the verdict when the peer has no
    claim for the round or the claim cannot be decoded.
    """

    def __init__(
        self,
        calculator: DistributionCalculator,
        peer_claims: PeerClaimSource,
        accept_missing_claim: bool = True,
    ):
        self.calculator = calculator
        self.peer_claims = peer_claims
        self.accept_missing_claim = accept_missing_claim

    async def validate(self, peer_id: str, round: int) -> bool:
        """True if ``peer_id``'s claimed list for ``round`` matches ours."""
        result = await self.check(peer_id, round)
        return result.valid

    async def check(self, peer_id: str, round: int) -> ValidationResult:
        try:
            return await self._check(peer_id, round)
        except Exception as e:
            bt.logging.error({
                "distribution_validation": {"peer": peer_id, "round": round, "error": str(e)}
            })
            return ValidationResult(valid=False, errors=[f"validation error: {e}"])

    async def _check(self, peer_id: str, round: int) -> ValidationResult:
        evidence: dict[str, Any] = {"peer": peer_id, "round": round}

        try:
            claimed = await self._load_claim(peer_id, round, evidence)
        except InvalidClaimAmount as e:
            # a decoded mapping is a claim, never a missing one
            evidence["claim"] = "invalid_amounts"
            return self._fail(evidence, [f"invalid claimed amounts: {e}"])
        if claimed is None:
            bt.logging.info({
                "distribution_validation": {
                    "peer": peer_id,
                    "round": round,
                    "status": evidence.get("claim", "missing"),
                    "accepted": self.accept_missing_claim,
                }
            })
            errors = [] if self.accept_missing_claim else [f"claim {evidence.get('claim', 'missing')}"]
            return ValidationResult(valid=self.accept_missing_claim, errors=errors, evidence=evidence)

        computed = await self.calculator.compute_result(round)
        evidence["claimed_hash"] = compute_hash(claimed.as_dict())
        evidence["computed_hash"] = compute_hash(computed.distribution.as_dict())

        if computed.fetch_failed:
            return self._fail(evidence, ["recomputation failed: round data unavailable"])

        local = computed.distribution
        if local.is_empty() and not claimed.is_empty():
            return self._fail(evidence, ["computed list is empty but claim is not"])

        if distributions_equal(claimed, local):
            bt.logging.info({"distribution_validation": {"peer": peer_id, "round": round, "status": "pass"}})
            return ValidationResult(valid=True, evidence=evidence)

        diff = diff_distributions(claimed, local)
        errors = [f"missing node: {k}" for k in diff.missing]
        errors += [f"unexpected node: {k}" for k in diff.extra]
        errors += [
            f"amount mismatch for {k}: claimed {c}, computed {v}"
            for k, (c, v) in diff.mismatched.items()
        ]
        evidence["n_missing"] = len(diff.missing)
        evidence["n_extra"] = len(diff.extra)
        evidence["n_mismatched"] = len(diff.mismatched)
        return self._fail(evidence, errors)

    async def _load_claim(
        self, peer_id: str, round: int, evidence: dict[str, Any],
    ) -> DistributionList | None:
        try:
            raw = await self.peer_claims.get_peer_distribution_list(peer_id, round)
        except Exception as e:
            bt.logging.warning({"distribution_claim_fetch": {"peer": peer_id, "round": round, "error": str(e)}})
            evidence["claim"] = "unavailable"
            return None
        if raw is None:
            evidence["claim"] = "missing"
            return None
        try:
            return DistributionList.from_wire(raw, round=round)
        except MalformedPeerClaim as e:
            bt.logging.warning({"distribution_claim_malformed": {"peer": peer_id, "round": round, "error": str(e)}})
            evidence["claim"] = "malformed"
            return None

    def _fail(self, evidence: dict[str, Any], errors: list[str]) -> ValidationResult:
        bt.logging.warning({
            "distribution_validation": {
                "peer": evidence.get("peer"),
                "round": evidence.get("round"),
                "status": "fail",
                "errors": errors[:10],
            }
        })
        return ValidationResult(valid=False, errors=errors, evidence=evidence)


__all__ = [
    "DistributionDiff",
    "DistributionValidator",
    "ValidationResult",
    "diff_distributions",
    "distributions_equal",
]
