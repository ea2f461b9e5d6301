"""The OplogEmitter: turns a tailed MongoDB oplog into insert/update/delete events."""

from __future__ import annotations

import re
import threading
from collections.abc import Mapping
from enum import Enum
from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from pymongo import CursorType
from pymongo.errors import PyMongoError

from oplog_emitter.backoff import backoff_from_options
from oplog_emitter.checkpoint import resolve_checkpoint
from oplog_emitter.connector import MongoVersion, OplogConnector
from oplog_emitter.errors import CursorClosedError, InvalidArgument, OplogEmitterError
from oplog_emitter.events import EventEmitter, Listener
from oplog_emitter.options import OplogOptions, validate_args
from oplog_emitter.types import parse_operation

if TYPE_CHECKING:
    from bson.timestamp import Timestamp
    from pymongo.collection import Collection
    from pymongo.cursor import Cursor
    from tenacity.wait import wait_base

logger: Logger = getLogger(__name__)

EVENTS: frozenset[str] = frozenset({"op", "insert", "update", "delete", "error"})


class State(str, Enum):
    """Lifecycle of an OplogEmitter. An emitter only moves forward through these states."""

    IDLE = "idle"
    CONNECTING = "connecting"
    RESOLVING_CHECKPOINT = "resolving_checkpoint"
    TAILING = "tailing"
    TERMINATED = "terminated"


class OplogEmitter(EventEmitter):
    """An event emitter that fires for every oplog entry.

    Events:
        op: every oplog entry matching the ``database``/``collection`` patterns.
        insert, update, delete: fired after ``op`` for entries with operation code ``i``, ``u`` and ``d``.
        error: fired exactly once when the emitter terminates on a failure. No event is fired afterwards.

    Listeners receive the raw oplog document and run on the emitter's worker thread, in oplog order. Listeners passed
    with ``listeners=`` see every entry even with ``autostart``. An error raised before any ``error`` listener was
    registered is handed to the first one registered afterwards.

    Example:
        >>> emitter = OplogEmitter("mongodb://localhost:27017/local", autostart=False)
        >>> emitter.on("insert", lambda entry: print("inserted", entry["o"]))
        >>> emitter.on("error", lambda error: print("stopped:", error))
        >>> emitter.start()

    Args:
        args: A MongoDB connection string or a mapping of options (see `validate_args`).
        connector: Connector to reuse. If omitted, a new OplogConnector is created from the options.
        backoff: tenacity wait strategy between connection attempts. Defaults to the ``min_backoff``/``max_backoff``
            options.
        listeners: Listeners (or lists of listeners) per event name, registered before the pipeline starts.
        autostart: Start the pipeline from the constructor.
        **options: Options given as keyword arguments instead of ``args``.

    Raises:
        InvalidArgument: when the options are not valid. Nothing is started in that case.
    """

    def __init__(
        self,
        args: str | Mapping[str, Any] | None = None,
        *,
        connector: OplogConnector | None = None,
        backoff: wait_base | None = None,
        listeners: Mapping[str, Union[Listener, Iterable[Listener]]] | None = None,
        autostart: bool = True,
        **options: Any,
    ) -> None:
        super().__init__()
        if options:
            if args is not None:
                raise InvalidArgument("options must be given either as a single argument or as keywords")
            args = options
        self._options: OplogOptions = validate_args(args)
        self._namespace: re.Pattern = re.compile(self._options.namespace_pattern)
        self._connector = connector or OplogConnector(
            self._options.oplog_url,
            credentials=self._options.credentials,
            log=self._options.log,
        )
        self._backoff: wait_base = backoff or backoff_from_options(self._options)
        self._state: State = State.IDLE
        self._error: Optional[OplogEmitterError] = None
        self._cursor: Optional[Cursor] = None
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._pending_error: Optional[OplogEmitterError] = None
        for event, registered in (listeners or {}).items():
            for listener in [registered] if callable(registered) else registered:
                self.on(event, listener)
        if autostart:
            self.start()

    @property
    def options(self) -> OplogOptions:
        return self._options

    @property
    def state(self) -> State:
        return self._state

    @property
    def error(self) -> Optional[OplogEmitterError]:
        """The failure that terminated the emitter, if any."""
        return self._error

    @property
    def server_version(self) -> MongoVersion | None:
        return getattr(self._connector, "version", None)

    def _check_event(self, event: str) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}, expected one of {', '.join(sorted(EVENTS))}")

    def start(self) -> None:
        """Start connecting and tailing on a background thread. An emitter can only be started once."""
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("OplogEmitter can only be started once")
            self._thread = threading.Thread(target=self._run, name="oplog-emitter", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the emitter and release its cursor and connection. A stopped emitter does not fire ``error``."""
        self._stopped.set()
        self._release()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread to finish. Returns True when the emitter has terminated."""
        if self._thread is None:
            return self._state == State.TERMINATED
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __enter__(self) -> OplogEmitter:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    def _release(self) -> None:
        with self._lock:
            cursor, self._cursor = self._cursor, None
        if cursor is not None:
            cursor.close()
        self._connector.close()

    def _run(self) -> None:
        error: Optional[OplogEmitterError] = None
        try:
            self._state = State.CONNECTING
            collection: Collection = self._connector.establish(self._options.retries, self._backoff)
            if self._stopped.is_set():
                return

            self._state = State.RESOLVING_CHECKPOINT
            checkpoint: Timestamp = resolve_checkpoint(
                self._options.get_last_timestamp,
                self._options.timestamp_timeout,
                self._options.log,
            )
            if self._stopped.is_set():
                return

            self._state = State.TAILING
            self._tail(collection, checkpoint)
        except OplogEmitterError as exception:
            error = exception
        except Exception as exception:  # pylint: disable=broad-exception-caught
            error = OplogEmitterError(f"Unexpected error while reading the oplog: {exception}")
            error.__cause__ = exception
        finally:
            self._release()
            self._state = State.TERMINATED

        if error is not None:
            self._fail(error)

    def _fail(self, error: OplogEmitterError) -> None:
        if self._stopped.is_set():
            logger.debug("Ignoring %r raised after the emitter was stopped", error)
            return
        with self._lock:
            self._error = error
            deliver: bool = bool(self.listeners("error"))
            if not deliver:
                self._pending_error = error
        if not deliver or not self.emit("error", error):
            logger.error("OplogEmitter terminated without an error listener", exc_info=error)

    def _registered(self, event: str, listener: Listener) -> None:
        if event != "error":
            return
        with self._lock:
            error, self._pending_error = self._pending_error, None
        if error is not None:
            self.emit("error", error)

    def _tail(self, collection: Collection, checkpoint: Timestamp) -> None:
        """Route every oplog entry newer than ``checkpoint`` until the emitter is stopped.

        Raises:
            CursorClosedError: if the cursor dies or fails while the emitter is still running.
        """
        cursor: Cursor = collection.find({"ts": {"$gt": checkpoint}}, cursor_type=CursorType.TAILABLE_AWAIT)
        with self._lock:
            if self._stopped.is_set():
                cursor.close()
                return
            self._cursor = cursor
        self._options.log(f"Tailing {collection.full_name} after {checkpoint!r}")

        try:
            while not self._stopped.is_set():
                # an exhausted pass on a live cursor means no new entries arrived during the await period
                for document in cursor:
                    if self._stopped.is_set():
                        return
                    self.route_event(document)
                if not cursor.alive:
                    break
        except PyMongoError as exception:
            if self._stopped.is_set():
                return
            self._options.log(f"Database cursor closed unexpectedly: {exception}")
            raise CursorClosedError() from exception

        if self._stopped.is_set():
            return
        self._options.log("Database cursor closed unexpectedly")
        raise CursorClosedError()

    def route_event(self, document: Mapping[str, Any]) -> None:
        """Fire ``op`` and the operation specific event for an oplog entry matching the namespace patterns."""
        namespace = document.get("ns") if isinstance(document, Mapping) else None
        if not isinstance(namespace, str) or not self._namespace.search(namespace):
            return

        self.emit("op", document)
        operation = parse_operation(document.get("op"))
        if operation is not None and operation.event_name is not None:
            self.emit(operation.event_name, document)
