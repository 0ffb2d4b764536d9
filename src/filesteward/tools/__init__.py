"""Command surface exposed to shells and agents."""

from .commands import OrganizerTools, ToolResult, format_action, summarize_proposal

__all__ = [
    "OrganizerTools",
    "ToolResult",
    "format_action",
    "summarize_proposal",
]
