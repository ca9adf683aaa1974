"""Custom exceptions for world synthesis."""


class WorldGenError(Exception):
    """Base exception for world generation errors."""

    pass


class ConfigurationError(WorldGenError, ValueError):
    """Raised when generation parameters are invalid, before any stage runs."""

    pass


class GenerationCancelled(WorldGenError):
    """Raised when a run is cancelled between stages or row batches."""

    pass


class GenerationStateError(WorldGenError):
    """Raised when an orchestrator is driven outside its state machine."""

    pass
