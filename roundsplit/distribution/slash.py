"""Slash penalty for disqualified submitters."""

from __future__ import annotations

from .models import SLASH_FRACTION, Amount, normalize_amount


class SlashCalculator:
    """Computes the penalty taken from a disqualified node's stake.

    Shared by both slash paths (audit with no votes, net-negative votes)
    so the two can never disagree on magnitude.
    """

    fraction = SLASH_FRACTION

    def penalty(self, stake: float) -> Amount:
        """Return ``-(stake * SLASH_FRACTION)``.

        Always non-positive; integral results come back as ``int``.
        """
        if stake < 0:
            raise ValueError(f"stake must be non-negative, got {stake}")
        return normalize_amount(-(stake * self.fraction))


__all__ = ["SlashCalculator"]
