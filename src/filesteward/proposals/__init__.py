"""Proposal state machine and its durable store."""

from .models import (
    STORE_VERSION,
    ApproveResult,
    BatchApproveResult,
    Proposal,
    RejectResult,
    StoreData,
)
from .service import SENSITIVE_CONFIRMATION_ERROR, ProposalService
from .store import (
    ProposalStore,
    clean_expired_cooldowns,
    clean_resolved_proposals,
)

__all__ = [
    "STORE_VERSION",
    "Proposal",
    "StoreData",
    "ApproveResult",
    "RejectResult",
    "BatchApproveResult",
    "ProposalService",
    "SENSITIVE_CONFIRMATION_ERROR",
    "ProposalStore",
    "clean_expired_cooldowns",
    "clean_resolved_proposals",
]
