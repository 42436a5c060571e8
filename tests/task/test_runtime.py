"""Tests for TaskRuntime."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from roundsplit.task.runtime import TaskRuntime


def _runtime(config=None):
    submission = MagicMock()
    submission.run = AsyncMock(return_value=None)
    audit = MagicMock()
    audit.run = AsyncMock(return_value={})
    distribution = MagicMock()
    distribution.submit_distribution_list = AsyncMock(return_value=None)
    distribution.audit_distribution = AsyncMock(return_value={})
    return TaskRuntime(
        submission=submission,
        audit=audit,
        distribution=distribution,
        config={"poll_interval_seconds": 0, **(config or {})},
    )


class TestTaskRuntime:

    @pytest.mark.asyncio
    async def test_runs_stages_in_order(self):
        runtime = _runtime()
        order = []
        runtime.submission.run.side_effect = lambda r: order.append(("submission", r))
        runtime.audit.run.side_effect = lambda r: order.append(("audit", r))
        runtime.distribution.submit_distribution_list.side_effect = lambda r: order.append(("submit", r))
        runtime.distribution.audit_distribution.side_effect = lambda r: order.append(("audit_dist", r))

        failed = await runtime.run_round(5)

        assert failed == []
        assert order == [("submission", 5), ("audit", 5), ("submit", 5), ("audit_dist", 5)]

    @pytest.mark.asyncio
    async def test_failing_stage_isolated(self):
        runtime = _runtime()
        runtime.audit.run.side_effect = RuntimeError("boom")

        failed = await runtime.run_round(1)

        assert failed == ["audit"]
        runtime.distribution.submit_distribution_list.assert_awaited_once_with(1)
        runtime.distribution.audit_distribution.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_max_rounds(self):
        runtime = _runtime({"start_round": 3, "max_rounds": 2})
        await runtime.run()
        assert runtime.round == 5
        assert [c.args[0] for c in runtime.submission.run.await_args_list] == [3, 4]

    @pytest.mark.asyncio
    async def test_stops_after_consecutive_errors(self):
        runtime = _runtime({"max_consecutive_errors": 3})
        runtime.submission.run.side_effect = RuntimeError("down")
        await runtime.run()
        assert runtime.submission.run.await_count == 3

    @pytest.mark.asyncio
    async def test_stop(self):
        runtime = _runtime()

        async def stop_after_first(r):
            runtime.stop()

        runtime.distribution.audit_distribution.side_effect = stop_after_first
        await runtime.run()
        assert runtime.submission.run.await_count == 1
