"""Filesystem-backed implementation of every collaborator protocol.

Layout under ``{data_dir}``:
  stake_ledger.json
  payloads/{sha256}.bin
  state/{namespace}/{key}.json
  rounds/round_{N}/submissions/{node_id}.json
  rounds/round_{N}/votes/{submitter_id}/{voter_id}.json
  rounds/round_{N}/distribution/{node_id}.json
  rounds/round_{N}/distribution_votes/{submitter_id}/{voter_id}.json

Several nodes can share one data_dir; each gets its own StateStore
namespace. A ``votes/{submitter_id}`` directory is the audit trigger for
that submission, so a submitter selected for audit with no votes yet
still has one.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from roundsplit.distribution.hashing import compute_hash
from roundsplit.distribution.models import (
    AuditTrigger,
    DistributionList,
    StakeLedger,
    Submission,
    SubmissionSnapshot,
    VoteRecord,
)


def _safe_name(name: str) -> str:
    """Reject ids that would escape their directory."""
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise ValueError(f"invalid identifier for filesystem store: {name!r}")
    return name


def _write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON via tmp file + rename so readers never see partial data."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(tmp_fd, "w") as f:
            json.dump(data, f, default=str, sort_keys=True)
        os.replace(tmp_path, str(path))
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _read_json(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


def _json_files(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix == ".json")


class FilesystemStore:
    """Local directory implementation of the task collaborators."""

    def __init__(self, data_dir: str, namespace: str = "default"):
        self.base = Path(data_dir)
        self.rounds_dir = self.base / "rounds"
        self.payloads_dir = self.base / "payloads"
        self.state_dir = self.base / "state" / _safe_name(namespace)
        self.stake_path = self.base / "stake_ledger.json"
        self.base.mkdir(parents=True, exist_ok=True)

    def _round_dir(self, round: int) -> Path:
        return self.rounds_dir / f"round_{int(round)}"

    # -- SubmissionSource --

    async def get_submissions(self, round: int) -> SubmissionSnapshot | None:
        round_dir = self._round_dir(round)
        files = _json_files(round_dir / "submissions")
        if not files:
            return None

        submissions = {}
        for path in files:
            sub = Submission(**_read_json(path))
            submissions[sub.node_id] = sub

        triggers = {}
        votes_dir = round_dir / "votes"
        if votes_dir.is_dir():
            for submitter_dir in sorted(votes_dir.iterdir()):
                if not submitter_dir.is_dir():
                    continue
                votes = [VoteRecord(**_read_json(p)) for p in _json_files(submitter_dir)]
                triggers[submitter_dir.name] = AuditTrigger(
                    submitter_id=submitter_dir.name, votes=votes,
                )

        return SubmissionSnapshot(round=round, submissions=submissions, audit_triggers=triggers)

    # -- StakeLedgerSource --

    async def get_stake_ledger(self) -> StakeLedger | None:
        if not self.stake_path.exists():
            return None
        return StakeLedger(**_read_json(self.stake_path))

    async def put_stake_ledger(self, ledger: StakeLedger) -> None:
        _write_json_atomic(self.stake_path, ledger.model_dump(mode="json"))

    # -- PeerClaimSource --

    async def get_peer_distribution_list(self, peer_id: str, round: int) -> str | None:
        path = self._round_dir(round) / "distribution" / f"{_safe_name(peer_id)}.json"
        if not path.exists():
            return None
        return path.read_text()

    async def list_distribution_submitters(self, round: int) -> list[str]:
        return [p.stem for p in _json_files(self._round_dir(round) / "distribution")]

    # -- StateStore --

    async def get(self, key: str) -> str | None:
        path = self.state_dir / f"{_safe_name(key)}.json"
        if not path.exists():
            return None
        return _read_json(path)["value"]

    async def set(self, key: str, value: str) -> None:
        _write_json_atomic(self.state_dir / f"{_safe_name(key)}.json", {"value": value})

    # -- ExternalStorage --

    async def put_payload(self, data: bytes) -> str:
        reference = compute_hash(data)
        path = self.payloads_dir / f"{reference}.bin"
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        return reference

    async def get_payload(self, reference: str) -> bytes | None:
        path = self.payloads_dir / f"{_safe_name(reference)}.bin"
        if not path.exists():
            return None
        return path.read_bytes()

    # -- TaskTransport --

    async def submit(self, submission: Submission) -> None:
        path = self._round_dir(submission.round) / "submissions" / f"{_safe_name(submission.node_id)}.json"
        _write_json_atomic(path, submission.model_dump(mode="json"))

    async def select_for_audit(self, round: int, submitter_id: str) -> None:
        """Open an audit trigger for a submission, with no votes yet."""
        (self._round_dir(round) / "votes" / _safe_name(submitter_id)).mkdir(parents=True, exist_ok=True)

    async def record_vote(self, round: int, submitter_id: str, vote: VoteRecord) -> None:
        path = (
            self._round_dir(round) / "votes" / _safe_name(submitter_id)
            / f"{_safe_name(vote.voter_id)}.json"
        )
        _write_json_atomic(path, vote.model_dump(mode="json"))

    async def upload_distribution_list(self, node_id: str, distribution: DistributionList) -> None:
        path = self._round_dir(distribution.round) / "distribution" / f"{_safe_name(node_id)}.json"
        _write_json_atomic(path, json.loads(distribution.to_wire()))

    async def record_distribution_vote(
        self, round: int, submitter_id: str, vote: VoteRecord,
    ) -> None:
        path = (
            self._round_dir(round) / "distribution_votes" / _safe_name(submitter_id)
            / f"{_safe_name(vote.voter_id)}.json"
        )
        _write_json_atomic(path, vote.model_dump(mode="json"))

    async def get_distribution_votes(self, round: int, submitter_id: str) -> list[VoteRecord]:
        directory = self._round_dir(round) / "distribution_votes" / _safe_name(submitter_id)
        return [VoteRecord(**_read_json(p)) for p in _json_files(directory)]


__all__ = ["FilesystemStore"]
