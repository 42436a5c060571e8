"""Tests for submission-validity strategies."""

import pytest

from roundsplit.task.submission_validator import (
    DEFAULT_REGISTRY,
    AlwaysValid,
    PointsChanged,
    PointsChangedAndOwnerMatch,
    StrategyRegistry,
    SubmissionValidator,
    build_validator,
)


class TestStrategies:

    def test_always_valid(self):
        assert AlwaysValid().is_valid({"total_points": 1}, None)

    def test_points_changed(self):
        s = PointsChanged()
        assert s.is_valid({"total_points": 12}, {"total_points": 10})
        assert not s.is_valid({"total_points": 10}, {"total_points": 10})

    def test_points_changed_needs_previous_record(self):
        assert not PointsChanged().is_valid({"total_points": 12}, None)

    def test_points_changed_needs_points(self):
        assert not PointsChanged().is_valid({"username": "u"}, {"total_points": 10})

    def test_owner_match(self):
        s = PointsChangedAndOwnerMatch()
        submitted = {"username": "alice", "total_points": 12}
        cached = {"username": "alice", "total_points": 10}
        assert s.is_valid(submitted, cached, owner="alice")
        assert not s.is_valid(submitted, cached, owner="bob")
        assert not s.is_valid(submitted, cached, owner=None)

    def test_owner_match_still_requires_change(self):
        s = PointsChangedAndOwnerMatch()
        record = {"username": "alice", "total_points": 10}
        assert not s.is_valid(record, record, owner="alice")

    def test_protocol(self):
        for strategy in (AlwaysValid(), PointsChanged(), PointsChangedAndOwnerMatch()):
            assert isinstance(strategy, SubmissionValidator)


class TestStrategyRegistry:

    def test_default_names(self):
        assert DEFAULT_REGISTRY.names == ["always_valid", "points_changed", "points_changed_owner_match"]

    def test_build_validator(self):
        assert isinstance(build_validator("points_changed"), PointsChanged)
        assert isinstance(build_validator("points_changed_owner_match"), PointsChangedAndOwnerMatch)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown submission strategy"):
            build_validator("nope")

    def test_duplicate_registration(self):
        registry = StrategyRegistry()
        registry.register(AlwaysValid())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(AlwaysValid())

    def test_custom_registry(self):
        registry = StrategyRegistry()
        registry.register(AlwaysValid())
        assert isinstance(build_validator("always_valid", registry), AlwaysValid)
        with pytest.raises(ValueError):
            build_validator("points_changed", registry)
