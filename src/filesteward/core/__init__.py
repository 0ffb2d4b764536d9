"""Core wiring for FileSteward."""

from .runtime import Runtime

__all__ = [
    "Runtime",
]
