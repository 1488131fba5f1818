"""Failure taxonomy for discovery jobs.

Each error names the stage it came from; the pipeline turns any of them
into a `failed` job whose error string is the message.
"""


class DiscoveryError(Exception):
    stage = "discovery"


class CategoryNotFoundError(DiscoveryError):
    """Input error: the category is missing or belongs to someone else."""
    stage = "category"


class EmptyStageError(DiscoveryError):
    """A stage legitimately produced nothing to work with."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class UpstreamFaultError(DiscoveryError):
    """Every unit of a stage faulted (provider crash, unusable completion)."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class PersistenceError(DiscoveryError):
    stage = "persistence"
