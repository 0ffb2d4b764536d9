"""Command surface over the proposal and watcher services."""

import os
from dataclasses import dataclass
from typing import Any

from ..errors import FileStewardError
from ..models import ProposalAction, ProposalStatus
from ..proposals.models import Proposal
from ..proposals.service import ProposalService
from ..utils.logging import get_logger
from ..watcher.service import WatcherService

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 20


@dataclass
class ToolResult:
    """Outcome of a command: JSON-ready data on success, a message on failure."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None


def format_action(action: ProposalAction, destination_path: str) -> str:
    """Short human description of what approving a proposal will do."""
    parts = destination_path.replace(os.sep, "/").split("/")
    tail = "/".join(parts[-3:])

    if action == ProposalAction.MOVE:
        return f"move to {tail}"
    if action == ProposalAction.RENAME:
        return f"rename to {parts[-1]}"
    if action == ProposalAction.MOVE_AND_RENAME:
        return f"move and rename to {tail}"
    return str(action)


def summarize_proposal(proposal: Proposal) -> dict[str, Any]:
    return {
        "id": proposal.id,
        "filename": proposal.source_filename,
        "category": proposal.category.value,
        "action": format_action(proposal.action, proposal.destination_path),
        "confidence": proposal.confidence.value,
        "sensitive": proposal.sensitive,
        "createdAt": proposal.created_at.isoformat(),
        "reasoning": proposal.reasoning,
    }


class OrganizerTools:
    """
    Transport-independent commands for a calling shell.

    Every command returns a ToolResult; exceptions never escape.
    """

    def __init__(self, proposals: ProposalService, watcher: WatcherService):
        self.proposals = proposals
        self.watcher = watcher

    # Proposals

    def list_proposals(
        self, status: str | None = None, limit: int | None = None
    ) -> ToolResult:
        status = status or ProposalStatus.PENDING.value
        limit = DEFAULT_LIST_LIMIT if limit is None else limit

        if status == "all":
            proposals = self.proposals.get_all()
        else:
            try:
                proposals = self.proposals.get_by_status(status)
            except ValueError:
                return ToolResult(success=False, error=f"Unknown proposal status: {status}")

        proposals.sort(key=lambda p: p.created_at, reverse=True)
        total = len(proposals)
        return ToolResult(
            success=True,
            data={
                "proposals": [summarize_proposal(p) for p in proposals[:limit]],
                "total": total,
                "hasMore": total > limit,
            },
        )

    def approve_proposal(self, proposal_id: str, confirm_sensitive: bool = False) -> ToolResult:
        result = self.proposals.approve(proposal_id, confirm_sensitive)
        if not result.success:
            return ToolResult(success=False, error=result.error)

        data = {
            "action": "Moved file",
            "sourcePath": result.source_path,
            "destinationPath": result.destination_path,
        }
        if result.persistence_error:
            data["warning"] = result.persistence_error
        return ToolResult(success=True, data=data)

    def reject_proposal(self, proposal_id: str, reason: str | None = None) -> ToolResult:
        proposal = self.proposals.get_by_id(proposal_id)
        if proposal is None:
            return ToolResult(success=False, error=f"Proposal '{proposal_id}' not found")

        result = self.proposals.reject(proposal_id, reason)
        if not result.success:
            return ToolResult(success=False, error=result.error)

        data = {
            "action": "Rejected proposal",
            "filename": proposal.source_filename,
            "cooldownUntil": result.cooldown_until.isoformat() if result.cooldown_until else None,
        }
        if result.persistence_error:
            data["warning"] = result.persistence_error
        return ToolResult(success=True, data=data)

    def approve_all_proposals(self, include_sensitive: bool = False) -> ToolResult:
        result = self.proposals.approve_all(include_sensitive)
        return ToolResult(
            success=True,
            data={
                "approved": result.approved,
                "skipped": result.skipped,
                "failed": result.failed,
                "errors": list(result.errors),
            },
        )

    def clear_all_proposals(self) -> ToolResult:
        try:
            cleared = self.proposals.clear_all_pending()
        except FileStewardError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, data={"cleared": cleared})

    # Watcher

    def get_watched_directories(self) -> ToolResult:
        directories = self.watcher.get_watched_directories()
        return ToolResult(
            success=True,
            data={
                "directories": [
                    {"path": d.path, "enabled": d.enabled, "recursive": d.recursive}
                    for d in directories
                ],
                "watcherStatus": "running" if self.watcher.is_running else "stopped",
            },
        )

    def add_watched_directory(self, path: str, recursive: bool = False) -> ToolResult:
        try:
            directory = self.watcher.add_directory(path, recursive=recursive)
        except FileStewardError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(
            success=True,
            data={
                "action": "Added directory to watch list",
                "path": directory.path,
                "enabled": directory.enabled,
                "recursive": directory.recursive,
            },
        )

    def remove_watched_directory(self, path: str) -> ToolResult:
        try:
            removed = self.watcher.remove_directory(path)
        except FileStewardError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(
            success=True, data={"action": "Removed directory from watch list", "path": removed}
        )

    def start_watcher(self) -> ToolResult:
        if self.watcher.is_running:
            action = "Watcher already running"
        else:
            try:
                self.watcher.start()
            except FileStewardError as e:
                return ToolResult(success=False, error=str(e))
            action = "Started file watcher"
        return ToolResult(
            success=True,
            data={"action": action, "directories": len(self.watcher.get_watched_directories())},
        )

    def stop_watcher(self) -> ToolResult:
        if not self.watcher.is_running:
            return ToolResult(success=True, data={"action": "Watcher already stopped"})
        self.watcher.stop()
        return ToolResult(success=True, data={"action": "Stopped file watcher"})

    def scan_directory(self, path: str, recursive: bool = False) -> ToolResult:
        try:
            result = self.watcher.scan_directory(path, recursive=recursive)
        except FileStewardError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(
            success=True,
            data={
                "action": "Scanned directory",
                "path": path,
                "recursive": recursive,
                "filesScanned": result.files_scanned,
                "proposalsCreated": result.proposals_created,
                "skipped": result.skipped,
                "errors": list(result.errors),
            },
        )
