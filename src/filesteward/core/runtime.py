"""Wires configuration into a running pipeline."""

from ..analyzer import FileAnalyzer
from ..audit import AuditSink, DailyJournal, NullAuditSink
from ..classifier import BaseClassifier, OllamaClassifier
from ..config.models import FileStewardConfig
from ..mover import FileMover
from ..proposals import ProposalService, ProposalStore
from ..tools import OrganizerTools
from ..utils.logging import get_logger
from ..watcher import DestinationResolver, WatcherService

logger = get_logger(__name__)


class Runtime:
    """
    Builds every component of the pipeline from one configuration.

    Pipeline: filesystem event -> stability -> analyze -> propose -> human approval -> move
    """

    def __init__(
        self,
        config: FileStewardConfig,
        classifier: BaseClassifier | None = None,
        audit: AuditSink | None = None,
    ):
        """
        Initialize the runtime.

        Args:
            config: FileSteward configuration
            classifier: Override the configured classifier (e.g. in tests)
            audit: Override the configured audit sink
        """
        self.config = config

        if audit is None:
            audit = DailyJournal(config.audit.journal_dir) if config.audit.enabled else NullAuditSink()
        self.audit = audit

        if classifier is None and config.analysis.enable_llm_classification:
            classifier = OllamaClassifier(config.ai_settings)
        self.classifier = classifier

        self.resolver = DestinationResolver(config.organized_base_path)
        self.analyzer = FileAnalyzer(
            resolver=self.resolver,
            settings=config.analysis,
            classifier=self.classifier,
        )
        self.proposals = ProposalService(
            store=ProposalStore(config.proposals.store_path),
            cooldown_hours=config.proposals.cooldown_hours,
            mover=FileMover(),
            audit=self.audit,
            resolver=self.resolver,
        )
        self.watcher = WatcherService(
            settings=config.watcher,
            proposals=self.proposals,
            analyzer=self.analyzer,
            resolver=self.resolver,
            directories=config.watched_directories,
            audit=self.audit,
        )
        self.tools = OrganizerTools(self.proposals, self.watcher)

    def initialize(self) -> "Runtime":
        """Load persisted proposals. Returns self for chaining."""
        self.proposals.initialize()
        return self

    def shutdown(self) -> None:
        """Stop watching and persist proposal state."""
        self.watcher.stop()
        self.proposals.shutdown()

    def __enter__(self):
        return self.initialize()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False
