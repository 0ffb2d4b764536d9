"""Proposal lifecycle: creation, queries, approval, rejection and invalidation."""

import os
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from ..analyzer.analyzer import FileAnalysis
from ..audit.journal import AuditSink, safe_record
from ..errors import ProposalPersistenceError
from ..models import ProposalStatus
from ..mover.mover import FileMover
from ..utils.events import EventEmitter
from ..utils.logging import get_logger
from ..utils.paths import determine_action, normalize_path
from .models import ApproveResult, BatchApproveResult, Proposal, RejectResult, StoreData, utcnow
from .store import ProposalStore, clean_expired_cooldowns, clean_resolved_proposals

if TYPE_CHECKING:
    from ..watcher.destination import DestinationResolver

logger = get_logger(__name__)

SENSITIVE_CONFIRMATION_ERROR = "This proposal is flagged as sensitive. Set confirmSensitive to true."


class ProposalService(EventEmitter):
    """
    Owns every proposal and cooldown and the only writer of the store.

    A proposal starts ``pending`` and moves exactly once to ``approved``,
    ``rejected`` or ``invalid``; once its side effects are done it is
    dropped, so the store only ever holds pending proposals and cooldowns.
    At most one pending proposal exists per normalized source path.

    Events:
        proposal:created(proposal)
        proposal:approved(proposal, result)
        proposal:rejected(proposal)
        proposal:invalidated(proposal, reason)
        proposals:cleared(count)
    """

    def __init__(
        self,
        store: ProposalStore | str | Path,
        cooldown_hours: float = 24,
        mover: FileMover | None = None,
        audit: AuditSink | None = None,
        clock: Callable[[], datetime] = utcnow,
        resolver: "DestinationResolver | None" = None,
    ):
        """
        Initialize the service. Call ``initialize()`` before use.

        Args:
            store: Store instance, or the path of its JSON file
            cooldown_hours: How long a rejected path stays suppressed
            mover: Performs file moves on approval
            audit: Receives approval and rejection entries
            clock: Source of the current UTC time
            resolver: Re-checks destinations against the live watched set
                when proposals are created
        """
        super().__init__()
        self.store = store if isinstance(store, ProposalStore) else ProposalStore(Path(store))
        self.cooldown_hours = cooldown_hours
        self.mover = mover or FileMover()
        self.audit = audit
        self.clock = clock
        self.resolver = resolver

        self._lock = threading.RLock()
        self._proposals: dict[str, Proposal] = {}
        self._pending_by_path: dict[str, str] = {}
        self._cooldowns: dict[str, datetime] = {}
        self._initialized = False

    # Lifecycle

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Load state from disk, dropping expired cooldowns and resolved leftovers."""
        with self._lock:
            if self._initialized:
                return

            data = self.store.load()
            now = self.clock()
            before = (len(data.proposals), len(data.cooldowns))
            # Resolved proposals only survive a crash between transition and removal
            data = clean_expired_cooldowns(data, now)
            data = clean_resolved_proposals(data, retention_days=0, now=now)

            if (len(data.proposals), len(data.cooldowns)) != before:
                try:
                    self.store.save(data)
                except OSError as e:
                    logger.warning(f"Could not save cleaned proposal store: {e}")

            self._load_from_store_data(data)
            self._initialized = True
            logger.info(
                f"Loaded {len(self._pending_by_path)} pending proposal(s) and "
                f"{len(self._cooldowns)} cooldown(s)"
            )

    def shutdown(self) -> None:
        """Save state and mark the service uninitialized."""
        with self._lock:
            if not self._initialized:
                return
            self.save()
            self._initialized = False

    def save(self) -> None:
        """
        Write the current state to the store.

        Raises:
            ProposalPersistenceError: If the write failed
        """
        with self._lock:
            try:
                self.store.save(self._to_store_data())
            except OSError as e:
                logger.error(f"Failed to save proposal store {self.store.file_path}: {e}")
                raise ProposalPersistenceError(f"Failed to save proposals: {e}") from e

    def _try_save(self) -> str | None:
        try:
            self.save()
            return None
        except ProposalPersistenceError as e:
            return str(e)

    # Creation

    def create_from_analysis(self, analysis: FileAnalysis) -> Proposal | None:
        """
        Create a pending proposal for an analyzed file.

        Returns:
            The new proposal, or None if the path already has a pending
            proposal, is on cooldown, or is already at its destination.

        Raises:
            ProposalPersistenceError: If the proposal was created but could not be saved
        """
        path = normalize_path(analysis.path)
        if self.resolver is not None:
            resolution = self.resolver.resolve(analysis)
            if resolution is None:
                return None
            destination, action = resolution.path, resolution.action
        else:
            destination = normalize_path(analysis.suggested_destination)
            if path == destination:
                return None
            action = determine_action(path, destination)

        with self._lock:
            if self.has_pending_for_path(path) or self.is_on_cooldown(path):
                return None

            proposal = Proposal(
                id=str(uuid.uuid4()),
                created_at=self.clock(),
                source_path=path,
                source_filename=analysis.filename,
                source_size=analysis.size,
                source_mtime=analysis.mtime,
                action=action,
                destination_path=destination,
                category=analysis.suggested_category,
                confidence=analysis.confidence,
                reasoning=analysis.reasoning,
                sensitive=analysis.sensitive,
                sensitive_reason=analysis.sensitive_reason,
            )

            self._proposals[proposal.id] = proposal
            self._pending_by_path[path] = proposal.id
            error = self._try_save()

            logger.info(
                f"Proposed {proposal.action.value} of {proposal.source_filename} "
                f"to {proposal.destination_path} ({proposal.category.value}, "
                f"{proposal.confidence.value}{', sensitive' if proposal.sensitive else ''})"
            )
            self.emit("proposal:created", proposal.model_copy())

            if error:
                raise ProposalPersistenceError(error)
            return proposal.model_copy()

    # Queries

    def get_all(self) -> list[Proposal]:
        with self._lock:
            return [p.model_copy() for p in self._proposals.values()]

    def get_pending(self) -> list[Proposal]:
        return self.get_by_status(ProposalStatus.PENDING)

    def get_by_status(self, status: ProposalStatus | str) -> list[Proposal]:
        status = ProposalStatus(status)
        with self._lock:
            return [p.model_copy() for p in self._proposals.values() if p.status == status]

    def get_by_id(self, proposal_id: str) -> Proposal | None:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            return proposal.model_copy() if proposal else None

    def get_by_source_path(self, path: str | Path) -> Proposal | None:
        """Return the pending proposal for a source path, if any."""
        with self._lock:
            proposal_id = self._pending_by_path.get(normalize_path(path))
            if proposal_id is None:
                return None
            return self.get_by_id(proposal_id)

    def has_pending_for_path(self, path: str | Path) -> bool:
        with self._lock:
            return normalize_path(path) in self._pending_by_path

    def is_on_cooldown(self, path: str | Path) -> bool:
        """True if the path was rejected recently. Expired entries are evicted."""
        key = normalize_path(path)
        with self._lock:
            expiry = self._cooldowns.get(key)
            if expiry is None:
                return False
            if expiry > self.clock():
                return True
            del self._cooldowns[key]
            return False

    def get_cooldowns(self) -> dict[str, datetime]:
        """Active cooldowns by source path."""
        now = self.clock()
        with self._lock:
            return {path: expiry for path, expiry in self._cooldowns.items() if expiry > now}

    # Transitions

    def approve(self, proposal_id: str, confirm_sensitive: bool = False) -> ApproveResult:
        """
        Approve a proposal and move its file.

        Sensitive proposals need ``confirm_sensitive``. A vanished source
        invalidates the proposal; an existing destination is never
        overwritten.
        """
        with self._lock:
            proposal = self._proposals.get(proposal_id)

            if proposal is None:
                return ApproveResult(success=False, error=f"Proposal '{proposal_id}' not found")

            if proposal.status != ProposalStatus.PENDING:
                return ApproveResult(success=False, error=f"Proposal already {proposal.status.value}")

            if proposal.sensitive and not confirm_sensitive:
                return ApproveResult(success=False, error=SENSITIVE_CONFIRMATION_ERROR)

            if not os.path.exists(proposal.source_path):
                self.invalidate(proposal_id, "Source file no longer exists")
                return ApproveResult(success=False, error="Source file no longer exists")

            if os.path.exists(proposal.destination_path):
                return ApproveResult(success=False, error="Destination file already exists")

            move = self.mover.move(proposal.source_path, proposal.destination_path)
            if not move.success:
                proposal.execution_error = move.error_message
                self._try_save()
                return ApproveResult(
                    success=False, error=f"Failed to move file: {move.error_message}"
                )

            proposal.status = ProposalStatus.APPROVED
            proposal.resolved_at = self.clock()
            self._pending_by_path.pop(normalize_path(proposal.source_path), None)
            persistence_error = self._try_save()

            result = ApproveResult(
                success=True,
                source_path=proposal.source_path,
                destination_path=proposal.destination_path,
            )
            logger.info(f"Approved: {proposal.source_filename} -> {proposal.destination_path}")
            self.emit("proposal:approved", proposal.model_copy(), result)
            self._audit_approval(proposal)

            del self._proposals[proposal_id]
            persistence_error = self._try_save() or persistence_error
            result.persistence_error = persistence_error
            return result

    def reject(self, proposal_id: str, reason: str | None = None) -> RejectResult:
        """Reject a proposal and suppress its source path for the cooldown period."""
        with self._lock:
            proposal = self._proposals.get(proposal_id)

            if proposal is None:
                return RejectResult(success=False, error=f"Proposal '{proposal_id}' not found")

            if proposal.status != ProposalStatus.PENDING:
                return RejectResult(success=False, error=f"Proposal already {proposal.status.value}")

            now = self.clock()
            path = normalize_path(proposal.source_path)
            cooldown_until = now + timedelta(hours=self.cooldown_hours)

            proposal.status = ProposalStatus.REJECTED
            proposal.resolved_at = now
            self._pending_by_path.pop(path, None)
            self._cooldowns[path] = cooldown_until
            persistence_error = self._try_save()

            logger.info(
                f"Rejected: {proposal.source_filename}"
                + (f" ({reason})" if reason else "")
                + f"; cooldown until {cooldown_until.isoformat()}"
            )
            self.emit("proposal:rejected", proposal.model_copy())
            self._audit_rejection(proposal, reason)

            del self._proposals[proposal_id]
            persistence_error = self._try_save() or persistence_error
            return RejectResult(
                success=True, cooldown_until=cooldown_until, persistence_error=persistence_error
            )

    def invalidate(self, proposal_id: str, reason: str) -> None:
        """
        Drop a pending proposal whose source changed or disappeared.

        Silent: unknown or already resolved ids are ignored and save
        failures are only logged.
        """
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            if proposal is None or proposal.status != ProposalStatus.PENDING:
                return

            proposal.status = ProposalStatus.INVALID
            proposal.resolved_at = self.clock()
            self._pending_by_path.pop(normalize_path(proposal.source_path), None)

            logger.info(f"Invalidated proposal for {proposal.source_filename}: {reason}")
            self.emit("proposal:invalidated", proposal.model_copy(), reason)

            del self._proposals[proposal_id]
            self._try_save()

    def clear_all_pending(self) -> int:
        """
        Discard every pending proposal without touching any file.

        Raises:
            ProposalPersistenceError: If the cleared state could not be saved
        """
        with self._lock:
            pending = [p for p in self._proposals.values() if p.status == ProposalStatus.PENDING]
            for proposal in pending:
                self._pending_by_path.pop(normalize_path(proposal.source_path), None)
                del self._proposals[proposal.id]

            error = self._try_save()
            logger.info(f"Cleared {len(pending)} pending proposal(s)")
            self.emit("proposals:cleared", len(pending))

            if error:
                raise ProposalPersistenceError(error)
            return len(pending)

    def approve_all(self, include_sensitive: bool = False) -> BatchApproveResult:
        """
        Approve every pending proposal in creation order.

        Sensitive proposals are skipped unless ``include_sensitive``; one
        failure does not stop the rest.
        """
        result = BatchApproveResult()

        for proposal in self.get_pending():
            if proposal.sensitive and not include_sensitive:
                result.skipped += 1
                continue

            outcome = self.approve(proposal.id, confirm_sensitive=True)
            if outcome.success:
                result.approved += 1
            else:
                result.failed += 1
                if outcome.error:
                    result.errors.append(f"{proposal.source_filename}: {outcome.error}")

        logger.info(
            f"Batch approval: {result.approved} approved, {result.skipped} skipped, "
            f"{result.failed} failed"
        )
        return result

    # Internals

    def _load_from_store_data(self, data: StoreData) -> None:
        self._proposals.clear()
        self._pending_by_path.clear()
        self._cooldowns.clear()

        for proposal in data.proposals:
            proposal.source_path = normalize_path(proposal.source_path)
            if proposal.status == ProposalStatus.PENDING:
                if proposal.source_path in self._pending_by_path:
                    logger.warning(f"Dropping duplicate pending proposal for {proposal.source_path}")
                    continue
                self._pending_by_path[proposal.source_path] = proposal.id
            self._proposals[proposal.id] = proposal

        now = self.clock()
        for path, expiry in data.cooldowns.items():
            if expiry > now:
                self._cooldowns[normalize_path(path)] = expiry

    def _to_store_data(self) -> StoreData:
        now = self.clock()
        return StoreData(
            proposals=[p.model_copy() for p in self._proposals.values()],
            cooldowns={path: expiry for path, expiry in self._cooldowns.items() if expiry > now},
        )

    def _audit_approval(self, proposal: Proposal) -> None:
        lines = [
            f"**Approved**: Move `{proposal.source_filename}`",
            f"- From: `{proposal.source_path}`",
            f"- To: `{proposal.destination_path}`",
            f"- Category: {proposal.category.value}",
            f"- Confidence: {proposal.confidence.value}",
        ]
        if proposal.sensitive:
            lines.append("- **Sensitive file**")
        safe_record(self.audit, "File Organization Approved", "\n".join(lines))

    def _audit_rejection(self, proposal: Proposal, reason: str | None) -> None:
        lines = [
            f"**Rejected**: Move `{proposal.source_filename}`",
            f"- Proposed destination: `{proposal.destination_path}`",
            f"- Category: {proposal.category.value}",
        ]
        if reason:
            lines.append(f"- Reason: {reason}")
        lines.append(f"- Cooldown: {self.cooldown_hours:g} hours")
        safe_record(self.audit, "File Organization Rejected", "\n".join(lines))
