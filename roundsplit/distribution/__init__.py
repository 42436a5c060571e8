"""Reward/penalty distribution shared by submitting and auditing nodes.

Every node computes the round's distribution list independently from the
same snapshot (submissions, audit votes, stake ledger). A list claimed by
a peer is accepted only if recomputation yields exactly the same mapping.
"""

from .compute_distribution import (
    DistributionCalculator,
    DistributionResult,
    compute_distribution,
    compute_reward,
)
from .models import (
    MAX_REWARD_PER_PLAYER,
    SLASH_FRACTION,
    AuditTrigger,
    DistributionList,
    InvalidClaimAmount,
    MalformedPeerClaim,
    StakeEntry,
    StakeLedger,
    Submission,
    SubmissionSnapshot,
    VoteRecord,
)
from .slash import SlashCalculator
from .tally import Verdict, VoteTally
from .validator import (
    DistributionValidator,
    ValidationResult,
    diff_distributions,
    distributions_equal,
)

__all__ = [
    "MAX_REWARD_PER_PLAYER",
    "SLASH_FRACTION",
    "AuditTrigger",
    "DistributionCalculator",
    "DistributionList",
    "DistributionResult",
    "DistributionValidator",
    "InvalidClaimAmount",
    "MalformedPeerClaim",
    "SlashCalculator",
    "StakeEntry",
    "StakeLedger",
    "Submission",
    "SubmissionSnapshot",
    "ValidationResult",
    "Verdict",
    "VoteRecord",
    "VoteTally",
    "compute_distribution",
    "compute_reward",
    "diff_distributions",
    "distributions_equal",
]
