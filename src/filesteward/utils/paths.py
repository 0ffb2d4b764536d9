"""Path normalization and atomic file replacement shared across services."""

import os
import tempfile
from pathlib import Path

from ..models import ProposalAction


def normalize_path(path: str | Path) -> str:
    """
    Return the canonical string form of a path used as an index key.

    User home is expanded, the path is made absolute, ``.``/``..`` segments
    are collapsed and trailing separators are dropped. Symlinks are not
    resolved so that keys match the paths reported by filesystem events.
    """
    expanded = os.path.expanduser(str(path))
    return os.path.normpath(os.path.abspath(expanded))


def is_same_or_inside(path: str | Path, directory: str | Path) -> bool:
    """True if ``path`` equals ``directory`` or is nested anywhere below it."""
    candidate = normalize_path(path)
    parent = normalize_path(directory)
    if candidate == parent:
        return True
    prefix = parent if parent.endswith(os.sep) else parent + os.sep
    return candidate.startswith(prefix)


def determine_action(source_path: str | Path, destination_path: str | Path) -> ProposalAction:
    """Describe a relocation as a move, a rename, or both."""
    source = Path(normalize_path(source_path))
    destination = Path(normalize_path(destination_path))

    if source.parent == destination.parent:
        return ProposalAction.RENAME
    if source.name == destination.name:
        return ProposalAction.MOVE
    return ProposalAction.MOVE_AND_RENAME


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Replace ``path`` with ``content`` all-or-nothing.

    The data is written to a temporary file in the same directory, flushed
    to disk, and renamed over the target, so readers see either the old or
    the new document and never a partial one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
