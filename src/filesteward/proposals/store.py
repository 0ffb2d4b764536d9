"""JSON persistence layer for proposals with atomic writes."""

import json
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from ..models import ProposalStatus
from ..utils.logging import get_logger
from ..utils.paths import atomic_write_text
from .models import STORE_VERSION, StoreData, utcnow

logger = get_logger(__name__)


class ProposalStore:
    """
    Stateless codec between ``StoreData`` and a JSON file.

    ``load`` never raises: a missing, unreadable, unknown-version or
    malformed file degrades to an empty state with a warning.
    """

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)

    def load(self) -> StoreData:
        """Load store data from disk, falling back to an empty state."""
        if not self.file_path.exists():
            return self.empty_state()

        try:
            raw = json.loads(self.file_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read proposal store {self.file_path}: {e}; using empty state")
            return self.empty_state()

        if not isinstance(raw, dict):
            logger.warning(f"Proposal store {self.file_path} is not a JSON object; using empty state")
            return self.empty_state()

        version = raw.get("version")
        if not isinstance(version, int) or isinstance(version, bool) or version > STORE_VERSION:
            logger.warning(f"Unknown proposal store version {version!r}; using empty state")
            return self.empty_state()

        try:
            return StoreData.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Invalid proposal store {self.file_path}: {e}; using empty state")
            return self.empty_state()

    def save(self, data: StoreData) -> None:
        """
        Persist store data atomically, creating the parent directory if needed.

        Raises:
            OSError: If the file cannot be written.
        """
        data.last_modified = utcnow()
        payload = data.model_dump(mode="json", by_alias=True)
        atomic_write_text(self.file_path, json.dumps(payload, indent=2))
        logger.debug(
            f"Saved {len(data.proposals)} proposal(s), {len(data.cooldowns)} cooldown(s) "
            f"to {self.file_path}"
        )

    @staticmethod
    def empty_state() -> StoreData:
        return StoreData()


def clean_expired_cooldowns(data: StoreData, now: datetime | None = None) -> StoreData:
    """Return a copy of ``data`` without cooldowns whose expiry has passed."""
    now = now or utcnow()
    return data.model_copy(
        update={
            "cooldowns": {
                path: expiry for path, expiry in data.cooldowns.items() if expiry > now
            }
        }
    )


def clean_resolved_proposals(
    data: StoreData, retention_days: float = 7, now: datetime | None = None
) -> StoreData:
    """
    Return a copy of ``data`` without resolved proposals older than the retention window.

    Pending proposals are always kept. With ``retention_days=0`` every
    resolved proposal is dropped, which is how leftovers of an interrupted
    approval or rejection are purged at startup.
    """
    now = now or utcnow()
    retention = timedelta(days=retention_days)

    kept = []
    for proposal in data.proposals:
        if proposal.status == ProposalStatus.PENDING:
            kept.append(proposal)
        elif proposal.resolved_at is None:
            kept.append(proposal)
        elif now - proposal.resolved_at < retention:
            kept.append(proposal)

    return data.model_copy(update={"proposals": kept})
