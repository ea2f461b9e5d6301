"""Process your MongoDB oplog as events."""

from oplog_emitter.backoff import backoff_from_options, exponential_backoff
from oplog_emitter.checkpoint import resolve_checkpoint
from oplog_emitter.connector import OplogConnector, establish, resolve_oplog_collection
from oplog_emitter.emitter import EVENTS, OplogEmitter, State
from oplog_emitter.errors import (
    CheckpointError,
    CheckpointTimeoutError,
    CursorClosedError,
    InvalidArgument,
    InvalidCheckpointError,
    OplogConnectionError,
    OplogEmitterError,
    OplogNotFoundError,
)
from oplog_emitter.options import Credentials, OplogOptions, get_last_timestamp, validate_args
from oplog_emitter.types import Operation, OplogEntry, parse_operation

__all__ = [
    "EVENTS",
    "CheckpointError",
    "CheckpointTimeoutError",
    "Credentials",
    "CursorClosedError",
    "InvalidArgument",
    "InvalidCheckpointError",
    "Operation",
    "OplogConnectionError",
    "OplogConnector",
    "OplogEmitter",
    "OplogEmitterError",
    "OplogEntry",
    "OplogNotFoundError",
    "OplogOptions",
    "State",
    "backoff_from_options",
    "establish",
    "exponential_backoff",
    "get_last_timestamp",
    "parse_operation",
    "resolve_checkpoint",
    "resolve_oplog_collection",
    "validate_args",
]
