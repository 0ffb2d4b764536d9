"""Proposal records, persisted store layout and operation results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..models import ConfidenceLevel, FileCategory, ProposalAction, ProposalStatus

STORE_VERSION = 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so stored and live values compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _CamelModel(BaseModel):
    """Base model persisted with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class Proposal(_CamelModel):
    """A human-approvable suggestion to move or rename one file."""

    id: str
    created_at: datetime

    # Source snapshot at detection time
    source_path: str
    source_filename: str
    source_size: int
    source_mtime: float

    action: ProposalAction
    destination_path: str

    category: FileCategory
    confidence: ConfidenceLevel
    reasoning: str

    sensitive: bool = False
    sensitive_reason: Optional[str] = None

    status: ProposalStatus = ProposalStatus.PENDING
    resolved_at: Optional[datetime] = None
    execution_error: Optional[str] = None

    @field_validator("created_at", "resolved_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    @property
    def is_pending(self) -> bool:
        return self.status == ProposalStatus.PENDING


class StoreData(_CamelModel):
    """Root document of the proposal store."""

    version: int = STORE_VERSION
    last_modified: datetime = Field(default_factory=utcnow)
    proposals: list[Proposal] = Field(default_factory=list)
    cooldowns: dict[str, datetime] = Field(default_factory=dict)

    @field_validator("last_modified")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("cooldowns")
    @classmethod
    def ensure_cooldowns_utc(cls, v: dict[str, datetime]) -> dict[str, datetime]:
        return {path: as_utc(expiry) for path, expiry in v.items()}


@dataclass
class ApproveResult:
    """Result of approving a proposal."""

    success: bool
    source_path: str | None = None
    destination_path: str | None = None
    error: str | None = None
    # Set when the move succeeded but the store could not be written
    persistence_error: str | None = None


@dataclass
class RejectResult:
    """Result of rejecting a proposal."""

    success: bool
    cooldown_until: datetime | None = None
    error: str | None = None
    persistence_error: str | None = None


@dataclass
class BatchApproveResult:
    """Counts from approving every pending proposal."""

    approved: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
