"""Task node entrypoint.

Runs the per-round loop against a FilesystemStore: submit this node's
player record, audit peers' submissions, submit and audit distribution
lists.
"""

import asyncio
import os
import signal
import sys

import bittensor as bt
from dotenv import load_dotenv
from pydantic import ValidationError


def main() -> None:
    # Load .env if not in test mode
    if os.environ.get("ROUNDSPLIT_TEST_MODE") != "true":
        load_dotenv()

    from roundsplit.base.config import config, load_settings

    parser = config()
    args = parser.parse_args()

    try:
        settings = load_settings(args)
    except ValidationError as e:
        bt.logging.error({"node_config_error": str(e)})
        sys.exit(1)

    bt.logging.set_config(config=bt.Config(parser).logging)

    bt.logging.info({
        "node_config": {
            "node_id": settings.node_id,
            "username": settings.username,
            "data_dir": settings.data_path,
            "strategy": settings.submission_strategy,
            "accept_missing_claim": settings.accept_missing_claim,
            "start_round": settings.start_round,
        }
    })

    # Build node components
    from roundsplit.distribution.compute_distribution import DistributionCalculator
    from roundsplit.distribution.store.filesystem import FilesystemStore
    from roundsplit.distribution.validator import DistributionValidator
    from roundsplit.task.audit import AuditTask
    from roundsplit.task.distribution import DistributionTask
    from roundsplit.task.player_client import PlayerDataClient
    from roundsplit.task.runtime import TaskRuntime
    from roundsplit.task.submission import SubmissionTask
    from roundsplit.task.submission_validator import build_validator

    store = FilesystemStore(data_dir=settings.data_path, namespace=settings.node_id)
    players = PlayerDataClient(url=settings.player_data_url, timeout=settings.fetch_timeout)

    calculator = DistributionCalculator(
        submissions=store, stakes=store, fetch_timeout=settings.fetch_timeout,
    )
    validator = DistributionValidator(
        calculator=calculator,
        peer_claims=store,
        accept_missing_claim=settings.accept_missing_claim,
    )

    runtime = TaskRuntime(
        submission=SubmissionTask(
            node_id=settings.node_id,
            username=settings.username,
            players=players,
            state=store,
            storage=store,
            transport=store,
        ),
        audit=AuditTask(
            node_id=settings.node_id,
            strategy=build_validator(settings.submission_strategy),
            submissions=store,
            storage=store,
            transport=store,
        ),
        distribution=DistributionTask(
            node_id=settings.node_id,
            calculator=calculator,
            validator=validator,
            peer_claims=store,
            transport=store,
        ),
        config={
            "start_round": settings.start_round,
            "poll_interval_seconds": settings.poll_interval,
            "max_rounds": settings.max_rounds,
        },
    )

    # Graceful shutdown
    loop = asyncio.new_event_loop()

    def _signal_handler(sig, frame):
        bt.logging.info({"node": "shutdown_signal_received"})
        runtime.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        loop.run_until_complete(runtime.run())
    except KeyboardInterrupt:
        bt.logging.info({"node": "keyboard_interrupt"})
    finally:
        loop.run_until_complete(players.close())
        loop.close()
        bt.logging.info({"node": "stopped"})


if __name__ == "__main__":
    main()
