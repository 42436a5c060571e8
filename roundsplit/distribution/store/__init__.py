from .filesystem import FilesystemStore
from .interface import (
    ExternalStorage,
    PeerClaimSource,
    StakeLedgerSource,
    StateStore,
    SubmissionSource,
    TaskTransport,
)

__all__ = [
    "ExternalStorage",
    "FilesystemStore",
    "PeerClaimSource",
    "StakeLedgerSource",
    "StateStore",
    "SubmissionSource",
    "TaskTransport",
]
