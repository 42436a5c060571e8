"""Round tasks run by a node: submit, audit, distribute."""

from .audit import AuditTask
from .distribution import DistributionTask
from .player_client import PlayerDataClient, find_player
from .runtime import TaskRuntime
from .submission import SubmissionTask
from .submission_validator import (
    AlwaysValid,
    PointsChanged,
    PointsChangedAndOwnerMatch,
    StrategyRegistry,
    SubmissionValidator,
    build_validator,
)

__all__ = [
    "AlwaysValid",
    "AuditTask",
    "DistributionTask",
    "PlayerDataClient",
    "PointsChanged",
    "PointsChangedAndOwnerMatch",
    "StrategyRegistry",
    "SubmissionTask",
    "SubmissionValidator",
    "TaskRuntime",
    "build_validator",
    "find_player",
]
