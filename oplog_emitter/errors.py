"""Exceptions raised and emitted by oplog-emitter."""


class InvalidArgument(TypeError):
    """Raised synchronously when the emitter configuration is not valid."""


class OplogEmitterError(Exception):
    """Base class of every failure surfaced through the ``error`` event."""


class OplogConnectionError(OplogEmitterError):
    """Connecting or authenticating to MongoDB failed after all retries."""


class OplogNotFoundError(OplogConnectionError):
    """Neither the replica set oplog nor the legacy master oplog exists."""

    def __init__(
        self, message: str = "Could not find oplog collection. Make sure mongodb is configured for replication"
    ) -> None:
        super().__init__(message)


class CheckpointError(OplogEmitterError):
    """The checkpoint provider failed to produce a starting timestamp."""


class CheckpointTimeoutError(CheckpointError):
    """The checkpoint provider did not settle within ``timestamp_timeout``."""

    def __init__(self, message: str = "get_last_timestamp did not resolve before the timeout") -> None:
        super().__init__(message)


class InvalidCheckpointError(CheckpointError):
    """The checkpoint provider returned something other than a ``bson.Timestamp``."""

    def __init__(self, message: str = "get_last_timestamp() should return a bson.Timestamp") -> None:
        super().__init__(message)


class CursorClosedError(OplogEmitterError):
    """The tailable oplog cursor died while the emitter was still running."""

    def __init__(self, message: str = "Database cursor closed unexpectedly") -> None:
        super().__init__(message)
