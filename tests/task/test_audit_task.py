"""Tests for AuditTask voting."""

import json
import tempfile

import pytest

from roundsplit.distribution.models import Submission
from roundsplit.distribution.store.filesystem import FilesystemStore
from roundsplit.task.audit import AuditTask
from roundsplit.task.submission_validator import AlwaysValid, PointsChanged, PointsChangedAndOwnerMatch


@pytest.fixture
def store():
    with tempfile.TemporaryDirectory() as d:
        yield FilesystemStore(d, namespace="auditor")


async def _submit(store, node_id, round, record):
    ref = await store.put_payload(json.dumps(record).encode())
    await store.submit(Submission(node_id=node_id, round=round, payload_reference=ref))
    return ref


def _audit(store, strategy=None) -> AuditTask:
    return AuditTask(
        node_id="auditor",
        strategy=strategy or PointsChanged(),
        submissions=store,
        storage=store,
        transport=store,
    )


class TestAuditTask:

    @pytest.mark.asyncio
    async def test_valid_untriggered_submission_gets_no_vote(self, store):
        await _submit(store, "a", 1, {"username": "alice", "total_points": 5})
        await _submit(store, "a", 2, {"username": "alice", "total_points": 8})

        verdicts = await _audit(store).run(2)

        assert verdicts == {"a": True}
        snap = await store.get_submissions(2)
        assert "a" not in snap.audit_triggers

    @pytest.mark.asyncio
    async def test_invalid_submission_opens_trigger(self, store):
        await _submit(store, "a", 1, {"username": "alice", "total_points": 5})
        await _submit(store, "a", 2, {"username": "alice", "total_points": 5})

        verdicts = await _audit(store).run(2)

        assert verdicts == {"a": False}
        snap = await store.get_submissions(2)
        votes = snap.audit_triggers["a"].votes
        assert [(v.voter_id, v.is_valid) for v in votes] == [("auditor", False)]

    @pytest.mark.asyncio
    async def test_valid_vote_on_triggered_submission(self, store):
        await _submit(store, "a", 1, {"username": "alice", "total_points": 5})
        await _submit(store, "a", 2, {"username": "alice", "total_points": 9})
        await store.select_for_audit(2, "a")

        await _audit(store).run(2)

        snap = await store.get_submissions(2)
        assert [v.is_valid for v in snap.audit_triggers["a"].votes] == [True]

    @pytest.mark.asyncio
    async def test_skips_own_submission(self, store):
        await _submit(store, "auditor", 1, {"username": "me", "total_points": 1})
        assert await _audit(store).run(1) == {}

    @pytest.mark.asyncio
    async def test_first_submission_passes_without_vote(self, store):
        await _submit(store, "a", 1, {"username": "alice", "total_points": 5})

        assert await _audit(store).run(1) == {"a": True}
        snap = await store.get_submissions(1)
        assert snap.audit_triggers == {}

    @pytest.mark.asyncio
    async def test_compares_against_latest_earlier_submission(self, store):
        await _submit(store, "a", 1, {"username": "alice", "total_points": 5})
        await _submit(store, "a", 3, {"username": "alice", "total_points": 9})
        await _submit(store, "b", 2, {"username": "bob", "total_points": 1})
        await _submit(store, "b", 4, {"username": "bob", "total_points": 1})
        await _submit(store, "a", 5, {"username": "alice", "total_points": 9})
        await _submit(store, "b", 5, {"username": "bob", "total_points": 4})

        assert await _audit(store).run(3) == {"a": True}
        assert await _audit(store).run(5) == {"a": False, "b": True}

    @pytest.mark.asyncio
    async def test_earlier_submission_with_lost_payload_is_invalid(self, store):
        await store.submit(Submission(node_id="a", round=1, payload_reference="f" * 64))
        await _submit(store, "a", 2, {"username": "alice", "total_points": 5})
        assert await _audit(store).run(2) == {"a": False}

    @pytest.mark.asyncio
    async def test_lookback_window(self, store):
        await _submit(store, "a", 1, {"username": "alice", "total_points": 5})
        await _submit(store, "a", 5, {"username": "alice", "total_points": 5})
        audit = _audit(store)
        audit.lookback_rounds = 3
        assert await audit.run(5) == {"a": True}
        audit.lookback_rounds = 4
        assert await audit.run(5) == {"a": False}

    @pytest.mark.asyncio
    async def test_always_valid_strategy(self, store):
        await _submit(store, "a", 1, {"username": "alice", "total_points": 5})
        assert await _audit(store, AlwaysValid()).run(1) == {"a": True}

    @pytest.mark.asyncio
    async def test_owner_change_rejected(self, store):
        await _submit(store, "a", 1, {"username": "alice", "total_points": 5})
        await _submit(store, "a", 2, {"username": "mallory", "total_points": 50})
        assert await _audit(store, PointsChangedAndOwnerMatch()).run(2) == {"a": False}

    @pytest.mark.asyncio
    async def test_missing_payload_is_invalid(self, store):
        await store.submit(Submission(node_id="a", round=1, payload_reference="f" * 64))
        assert await _audit(store, AlwaysValid()).run(1) == {"a": False}

    @pytest.mark.asyncio
    async def test_non_json_payload_is_invalid(self, store):
        ref = await store.put_payload(b"not json")
        await store.submit(Submission(node_id="a", round=1, payload_reference=ref))
        assert await _audit(store, AlwaysValid()).run(1) == {"a": False}

    @pytest.mark.asyncio
    async def test_no_submissions(self, store):
        assert await _audit(store).run(4) == {}
