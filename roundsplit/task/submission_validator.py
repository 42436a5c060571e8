"""Selectable submission-validity strategies for the audit task.

Each strategy answers one question: given what a node submitted for a
round and the record this auditor cached for the previous round, is the
submission valid? The strategy is picked by name from configuration;
DistributionCalculator only ever sees the resulting votes.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

import bittensor as bt

PlayerRecord = Mapping[str, Any]


@runtime_checkable
class SubmissionValidator(Protocol):
    """Interface for submission-validity strategies."""

    name: str

    def is_valid(
        self,
        submitted: PlayerRecord,
        cached: PlayerRecord | None,
        owner: str | None = None,
    ) -> bool:
        ...


class AlwaysValid:
    """Accept every decodable submission."""

    name = "always_valid"

    def is_valid(self, submitted, cached, owner=None) -> bool:
        return True


class PointsChanged:
    """Valid when ``total_points`` moved since the previous round.

    Without a previous record there is nothing to compare against and the
    submission is rejected.
    """

    name = "points_changed"

    def is_valid(self, submitted, cached, owner=None) -> bool:
        if cached is None:
            return False
        if "total_points" not in submitted:
            return False
        bt.logging.debug({
            "points_changed": {
                "cached": cached.get("total_points"),
                "submitted": submitted.get("total_points"),
            }
        })
        return cached.get("total_points") != submitted.get("total_points")


class PointsChangedAndOwnerMatch(PointsChanged):
    """PointsChanged, and the record must belong to the expected user."""

    name = "points_changed_owner_match"

    def is_valid(self, submitted, cached, owner=None) -> bool:
        if not owner or submitted.get("username") != owner:
            return False
        return super().is_valid(submitted, cached, owner)


class StrategyRegistry:
    """Name -> SubmissionValidator lookup."""

    def __init__(self) -> None:
        self._strategies: dict[str, SubmissionValidator] = {}

    def register(self, strategy: SubmissionValidator) -> None:
        if strategy.name in self._strategies:
            raise ValueError(f"Strategy already registered: {strategy.name}")
        self._strategies[strategy.name] = strategy

    def get(self, name: str) -> SubmissionValidator:
        try:
            return self._strategies[name]
        except KeyError:
            raise ValueError(
                f"Unknown submission strategy: {name!r} (known: {', '.join(self.names)})"
            ) from None

    @property
    def names(self) -> list[str]:
        return sorted(self._strategies)


DEFAULT_REGISTRY = StrategyRegistry()
for _strategy in (AlwaysValid(), PointsChanged(), PointsChangedAndOwnerMatch()):
    DEFAULT_REGISTRY.register(_strategy)


def build_validator(name: str, registry: StrategyRegistry | None = None) -> SubmissionValidator:
    """Pick the configured strategy."""
    return (registry or DEFAULT_REGISTRY).get(name)


__all__ = [
    "DEFAULT_REGISTRY",
    "AlwaysValid",
    "PointsChanged",
    "PointsChangedAndOwnerMatch",
    "StrategyRegistry",
    "SubmissionValidator",
    "build_validator",
]
