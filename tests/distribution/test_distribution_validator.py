"""Tests for validating a peer's claimed distribution list."""

import json
from unittest.mock import AsyncMock

import pytest

from roundsplit.distribution.compute_distribution import DistributionCalculator
from roundsplit.distribution.models import (
    AuditTrigger,
    DistributionList,
    StakeEntry,
    StakeLedger,
    Submission,
    SubmissionSnapshot,
    VoteRecord,
)
from roundsplit.distribution.validator import (
    DistributionValidator,
    diff_distributions,
    distributions_equal,
)

EXPECTED = {"A": 25, "B": 25, "C": -35}


def _round_seven() -> tuple[SubmissionSnapshot, StakeLedger]:
    snap = SubmissionSnapshot(
        round=7,
        submissions={n: Submission(node_id=n, round=7, payload_reference=n) for n in "ABC"},
        audit_triggers={
            "B": AuditTrigger(submitter_id="B", votes=[
                VoteRecord(voter_id="x", is_valid=True),
                VoteRecord(voter_id="y", is_valid=True),
                VoteRecord(voter_id="z", is_valid=False),
            ]),
            "C": AuditTrigger(submitter_id="C", votes=[]),
        },
    )
    ledger = StakeLedger(
        entries={n: StakeEntry(node_id=n, stake_amount=s) for n, s in {"A": 100, "B": 100, "C": 50}.items()},
        bounty_per_round=90,
    )
    return snap, ledger


def _validator(claim, snapshot=None, ledger=None, accept_missing_claim=True) -> DistributionValidator:
    if snapshot is None and ledger is None:
        snapshot, ledger = _round_seven()
    submissions = AsyncMock()
    submissions.get_submissions = AsyncMock(return_value=snapshot)
    stakes = AsyncMock()
    stakes.get_stake_ledger = AsyncMock(return_value=ledger)
    peers = AsyncMock()
    peers.get_peer_distribution_list = AsyncMock(return_value=claim)
    calc = DistributionCalculator(submissions=submissions, stakes=stakes, fetch_timeout=5.0)
    return DistributionValidator(calc, peers, accept_missing_claim=accept_missing_claim)


class TestEqualityHelpers:

    def test_equal_regardless_of_order(self):
        assert distributions_equal({"a": 1, "b": 2}, {"b": 2, "a": 1})

    def test_value_difference(self):
        assert not distributions_equal({"a": 20}, {"a": 21})

    def test_key_count_difference(self):
        assert not distributions_equal({"a": 1}, {"a": 1, "b": 1})

    def test_same_count_different_keys(self):
        assert not distributions_equal({"a": 1, "b": 1}, {"a": 1, "c": 1})

    def test_accepts_distribution_lists(self):
        a = DistributionList(round=1, amounts={"a": 1})
        assert distributions_equal(a, {"a": 1})

    def test_diff(self):
        diff = diff_distributions({"a": 1, "b": 2, "x": 9}, {"a": 1, "b": 3, "y": 4})
        assert diff.missing == ["y"]
        assert diff.extra == ["x"]
        assert diff.mismatched == {"b": (2, 3)}
        assert diff

    def test_empty_diff_is_falsy(self):
        assert not diff_distributions({"a": 1}, {"a": 1})


class TestDistributionValidator:

    @pytest.mark.asyncio
    async def test_matching_claim_passes(self):
        assert await _validator(json.dumps(EXPECTED)).validate("peer", 7)

    @pytest.mark.asyncio
    async def test_matching_claim_any_key_order(self):
        claim = json.dumps(dict(reversed(list(EXPECTED.items()))))
        assert await _validator(claim).validate("peer", 7)

    @pytest.mark.asyncio
    async def test_float_encoded_amounts_match(self):
        assert await _validator('{"A": 25.0, "B": 25, "C": -35.0}').validate("peer", 7)

    @pytest.mark.asyncio
    async def test_single_value_differs(self):
        claim = {**EXPECTED, "A": 26}
        result = await _validator(claim).check("peer", 7)
        assert not result
        assert any("amount mismatch for A" in e for e in result.errors)

    @pytest.mark.asyncio
    async def test_missing_key(self):
        claim = {"A": 25, "B": 25}
        result = await _validator(claim).check("peer", 7)
        assert not result.valid
        assert "missing node: C" in result.errors

    @pytest.mark.asyncio
    async def test_extra_key(self):
        claim = {**EXPECTED, "D": 25}
        result = await _validator(claim).check("peer", 7)
        assert not result.valid
        assert "unexpected node: D" in result.errors

    @pytest.mark.asyncio
    async def test_missing_claim_accepted_by_default(self):
        assert await _validator(None).validate("peer", 7)

    @pytest.mark.asyncio
    async def test_missing_claim_rejected_when_strict(self):
        assert not await _validator(None, accept_missing_claim=False).validate("peer", 7)

    @pytest.mark.asyncio
    async def test_malformed_claim_treated_as_missing(self):
        result = await _validator("{not json").check("peer", 7)
        assert result.valid
        assert result.evidence["claim"] == "malformed"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("claim", [
        '{"A": 25, "B": "x"}',
        '{"A": 1000000, "B": "x"}',
        '{"A": 25, "B": 25, "C": null}',
        '{"A": 25, "B": true, "C": -35}',
        '{"A": 25, "B": NaN, "C": -35}',
    ])
    async def test_decoded_claim_with_bad_amount_fails(self, claim):
        result = await _validator(claim).check("peer", 7)
        assert not result.valid
        assert result.evidence["claim"] == "invalid_amounts"

    @pytest.mark.asyncio
    async def test_claim_fetch_error_treated_as_missing(self):
        validator = _validator(None)
        validator.peer_claims.get_peer_distribution_list = AsyncMock(side_effect=TimeoutError())
        result = await validator.check("peer", 7)
        assert result.valid
        assert result.evidence["claim"] == "unavailable"

    @pytest.mark.asyncio
    async def test_local_empty_peer_non_empty_fails(self):
        snap = SubmissionSnapshot(round=7)
        ledger = StakeLedger(bounty_per_round=90)
        assert not await _validator(EXPECTED, snapshot=snap, ledger=ledger).validate("peer", 7)

    @pytest.mark.asyncio
    async def test_no_round_data_and_empty_claim_passes(self):
        validator = _validator({})
        validator.calculator.submissions.get_submissions = AsyncMock(return_value=None)
        assert await validator.validate("peer", 7)

    @pytest.mark.asyncio
    async def test_recompute_fetch_failure_fails(self):
        validator = _validator({})
        validator.calculator.stakes.get_stake_ledger = AsyncMock(side_effect=ConnectionError("down"))
        result = await validator.check("peer", 7)
        assert not result.valid
        assert "recomputation failed" in result.errors[0]

    @pytest.mark.asyncio
    async def test_never_raises(self):
        validator = _validator(EXPECTED)
        validator.calculator.compute_result = AsyncMock(side_effect=RuntimeError("boom"))
        assert await validator.validate("peer", 7) is False

    @pytest.mark.asyncio
    async def test_evidence_hashes(self):
        result = await _validator(EXPECTED).check("peer", 7)
        assert result.evidence["claimed_hash"] == result.evidence["computed_hash"]
