from __future__ import annotations


class QuizEngineError(Exception):
    """Base class for engine errors."""


class StorageReadError(QuizEngineError):
    """Stored document could not be read or decoded.

    Only raised inside the store; read_document() recovers with an empty document.
    """


class StorageWriteError(QuizEngineError):
    """Backing storage rejected a write (disk full, permissions, unserializable data)."""


class ExtractionError(QuizEngineError):
    """No usable quiz could be obtained from the vision model."""


class InvalidSessionState(QuizEngineError):
    """Quiz session transition not allowed from the current state."""


class ConfigError(QuizEngineError):
    pass
