"""Exception types shared across the engine."""

from __future__ import annotations


class ContentEngineError(Exception):
    """Base class for all engine errors."""


class QueueValidationError(ContentEngineError, ValueError):
    """Rejected enqueue input (e.g. both or neither source id set)."""


class ConfigValidationError(ContentEngineError, ValueError):
    """A settings object failed validation and was not saved."""


class NotFoundError(ContentEngineError, KeyError):
    """A record with the requested id does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Not found"


class ConfigurationError(ContentEngineError):
    """Fatal, non-retryable failure: missing contributor, credential or config."""


class ProviderError(ContentEngineError):
    """Transient failure talking to an external AI or publishing provider."""


class PipelineCancelled(ContentEngineError):
    """The run's queue item was cancelled while the run was in flight."""


class RunFinalizedError(ContentEngineError):
    """A write was attempted on a pipeline run that already reached COMPLETE or ERROR."""


class InvalidTransitionError(ContentEngineError, ValueError):
    """An article status change that the workflow does not allow."""


class PublishBlockedError(ContentEngineError):
    """Publishing was refused by the auto-publish gate or request validation."""

    def __init__(self, reasons: list[str]) -> None:
        super().__init__("; ".join(reasons))
        self.reasons = reasons
