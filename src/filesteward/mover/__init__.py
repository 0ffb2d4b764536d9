"""Mover module for safe file movement."""

from .mover import FileMover, MoveResult

__all__ = [
    "FileMover",
    "MoveResult",
]
