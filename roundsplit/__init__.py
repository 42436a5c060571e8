"""Deterministic per-round reward/penalty distribution for task nodes."""

__version__ = "0.3.0"
