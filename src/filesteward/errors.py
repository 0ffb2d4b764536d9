"""Exception hierarchy for FileSteward."""


class FileStewardError(Exception):
    """Base class for all FileSteward errors."""


class WatcherError(FileStewardError):
    """Raised when a watch-list change fails validation."""


class DestinationError(FileStewardError):
    """Raised when no safe destination can be computed for a file."""


class ClassifierError(FileStewardError):
    """Raised when the external classifier cannot produce a result."""


class ProposalPersistenceError(FileStewardError):
    """
    Raised when the proposal store could not be written after a transition.

    The in-memory transition has already happened and is not rolled back;
    the next successful save brings the store up to date.
    """
