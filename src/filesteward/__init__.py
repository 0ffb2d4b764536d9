"""
FileSteward - watches folders and proposes where new files belong.

Files are analyzed once they stop changing, and a proposal to move or
rename each one is queued for human review. Nothing moves until a
proposal is approved.
"""

__version__ = "0.1.0"
__author__ = "FileSteward Team"
__license__ = "MIT"

from .config import get_config
from .utils.logging import get_logger

from .analyzer import FileAnalysis, FileAnalyzer
from .classifier import NullClassifier, OllamaClassifier
from .core import Runtime
from .mover import FileMover, MoveResult
from .proposals import Proposal, ProposalService, ProposalStore
from .tools import OrganizerTools, ToolResult
from .watcher import DestinationResolver, WatcherService

__all__ = [
    "get_config",
    "get_logger",
    # Watcher
    "WatcherService",
    "DestinationResolver",
    # Analyzer
    "FileAnalyzer",
    "FileAnalysis",
    # Classifier
    "OllamaClassifier",
    "NullClassifier",
    # Proposals
    "Proposal",
    "ProposalService",
    "ProposalStore",
    # Mover
    "FileMover",
    "MoveResult",
    # Commands
    "OrganizerTools",
    "ToolResult",
    "Runtime",
]
