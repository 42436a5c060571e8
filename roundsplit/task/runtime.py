"""Task node runtime.

Main loop, one round per cycle: submit -> audit submissions ->
submit distribution list -> audit peers' distribution lists.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import bittensor as bt

from .audit import AuditTask
from .distribution import DistributionTask
from .submission import SubmissionTask


class TaskRuntime:
    """Drives the per-round stages until stopped."""

    def __init__(
        self,
        submission: SubmissionTask,
        audit: AuditTask,
        distribution: DistributionTask,
        config: dict[str, Any] | None = None,
    ):
        self.submission = submission
        self.audit = audit
        self.distribution = distribution
        self.config = config or {}

        self.round = int(self.config.get("start_round", 1))
        self._poll_interval = float(self.config.get("poll_interval_seconds", 60))
        self._max_rounds = self.config.get("max_rounds")
        self._max_errors = int(self.config.get("max_consecutive_errors", 10))
        self._running = False

    async def run(self) -> None:
        """Main loop. Runs until stopped or ``max_rounds`` rounds are done."""
        self._running = True
        bt.logging.info({
            "task_runtime": {
                "status": "starting",
                "start_round": self.round,
                "poll_interval": self._poll_interval,
            }
        })

        consecutive_errors = 0
        completed = 0

        while self._running:
            try:
                failed = await self.run_round(self.round)
            except asyncio.CancelledError:
                break

            if failed:
                consecutive_errors += 1
                if consecutive_errors >= self._max_errors:
                    bt.logging.error({"task_runtime": "too_many_errors, stopping"})
                    break
            else:
                consecutive_errors = 0

            self.round += 1
            completed += 1
            if self._max_rounds is not None and completed >= int(self._max_rounds):
                break

            try:
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break

        self._running = False
        bt.logging.info({"task_runtime": "stopped", "rounds_completed": completed})

    def stop(self) -> None:
        """Signal the runtime to stop."""
        self._running = False

    async def run_round(self, round: int) -> list[str]:
        """Run every stage for ``round``. Returns the names of failed stages.

        A failing stage is logged and does not stop the later ones.
        """
        stages: list[tuple[str, Callable[[int], Awaitable[Any]]]] = [
            ("submission", self.submission.run),
            ("audit", self.audit.run),
            ("distribution_submit", self.distribution.submit_distribution_list),
            ("distribution_audit", self.distribution.audit_distribution),
        ]

        failed: list[str] = []
        for name, stage in stages:
            try:
                await stage(round)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                failed.append(name)
                bt.logging.error({"task_stage_error": {"stage": name, "round": round, "error": str(e)}})

        bt.logging.info({"task_round": {"round": round, "failed_stages": failed}})
        return failed


__all__ = ["TaskRuntime"]
