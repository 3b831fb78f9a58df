r"""
Exception hierarchy for contention-bench.

Configuration errors surface to the caller. Event-level errors
(malformed, duplicate, stale) are raised internally and handled
where events enter the core: they are logged and dropped.

    from contention_bench.errors import ConfigurationError

    try:
        orchestrator.start(config)
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}")
"""

__all__ = [
    "ContentionBenchError",
    "ConfigurationError",
    "CatalogError",
    "MalformedCompletionEvent",
    "DuplicateCompletion",
    "StaleRunEvent",
    "LifecycleError",
    "RunCancelledError",
    "IncompleteRunError",
]


class ContentionBenchError(Exception):
    """Base class for all contention-bench errors."""


class ConfigurationError(ContentionBenchError, ValueError):
    """Invalid run configuration (e.g. no resource URLs)."""


class CatalogError(ConfigurationError):
    """Preset catalog file could not be loaded."""


class MalformedCompletionEvent(ContentionBenchError):
    """Inbound event is missing fields or carries an out-of-range id."""

    def __init__(self, reason: str, *, context_id: object = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.context_id = context_id


class DuplicateCompletion(ContentionBenchError):
    """Second completion for an already recorded context."""

    def __init__(self, context_id: int) -> None:
        super().__init__(f"Context {context_id} already reported completion")
        self.context_id = context_id


class StaleRunEvent(ContentionBenchError):
    """Event or timer belonging to a cancelled or superseded run."""

    def __init__(self, generation: int, current: int) -> None:
        super().__init__(f"Event for run generation {generation} (current: {current})")
        self.generation = generation
        self.current = current


class LifecycleError(ContentionBenchError, RuntimeError):
    """Invalid run lifecycle transition."""


class RunCancelledError(ContentionBenchError):
    """Awaited run was cancelled before it completed."""


class IncompleteRunError(ContentionBenchError, ValueError):
    """Statistics update requested for a run that is not complete."""
