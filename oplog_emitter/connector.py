"""MongoDB oplog connector utility"""

from __future__ import annotations

import math
import threading
from typing import Any, Callable, Optional, TypeAlias

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import CollectionInvalid, PyMongoError
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, stop_never
from tenacity.wait import wait_base

from oplog_emitter.backoff import exponential_backoff
from oplog_emitter.errors import OplogConnectionError, OplogEmitterError, OplogNotFoundError
from oplog_emitter.options import DEFAULT_RETRIES, Credentials, LogFunction, default_log

MongoVersion: TypeAlias = tuple[int, int]

# Replica set members write to oplog.rs, legacy master/slave deployments to oplog.$main.
OPLOG_COLLECTION_NAMES: tuple[str, ...] = ("oplog.rs", "oplog.$main")
OPLOG_DATABASE: str = "local"


def get_strict_collection(database: Database, name: str) -> Collection:
    """Return the named collection, raising CollectionInvalid when it does not exist."""
    if name not in database.list_collection_names(filter={"name": name}):
        raise CollectionInvalid(f"Collection {database.name}.{name} does not exist")
    return database[name]


def resolve_oplog_collection(database: Database, log: LogFunction = default_log) -> Collection:
    """Find the oplog collection of a database, trying the replica set name before the legacy name.

    Raises:
        OplogNotFoundError: if none of the known oplog collections exists.
    """
    for name in OPLOG_COLLECTION_NAMES:
        try:
            return get_strict_collection(database, name)
        except PyMongoError as exception:
            log(f"Could not open oplog collection {database.name}.{name}: {exception}")
    raise OplogNotFoundError()


class OplogConnector:
    """Opens a MongoDB client and resolves the oplog collection, retrying with exponential backoff.

    The connector owns at most one MongoClient at a time: a failed attempt closes its client before the next attempt
    starts.
    """

    def __init__(
        self,
        connection_string: str,
        credentials: Credentials | None = None,
        log: LogFunction = default_log,
        client_factory: Optional[Callable[..., MongoClient]] = None,
    ) -> None:
        self._connection_string = connection_string
        self._credentials = credentials
        self._log = log
        self._client_factory = client_factory or MongoClient
        self._client: Optional[MongoClient] = None
        self._version: MongoVersion | None = None
        self._closed = threading.Event()
        self._lock = threading.Lock()

    @property
    def version(self) -> MongoVersion | None:
        """Returns the MongoVersion of the server of the last successful connection."""
        return self._version

    @property
    def client(self) -> Optional[MongoClient]:
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _client_options(self) -> dict[str, Any]:
        if self._credentials is None:
            return {}
        return {"username": self._credentials.username, "password": self._credentials.password}

    def connect(self) -> Collection:
        """Make one connection attempt and return the oplog collection."""
        client: MongoClient = self._client_factory(self._connection_string, **self._client_options())
        with self._lock:
            if self.closed:
                client.close()
                raise OplogConnectionError("Connector was closed before a connection was established")
            self._client = client
        try:
            # server_info() forces server selection and authentication
            server_info: dict[str, Any] = client.server_info()
            version_array: list[int] = server_info["versionArray"]
            self._version = (version_array[0], version_array[1])
            database: Database = client.get_default_database(default=OPLOG_DATABASE)
            return resolve_oplog_collection(database, self._log)
        except BaseException:
            self._client = None
            client.close()
            raise

    def _retryable(self, exception: BaseException) -> bool:
        return isinstance(exception, (PyMongoError, OplogEmitterError)) and not self.closed

    def _log_failure(self, retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        self._log(f"Connection attempt {retry_state.attempt_number} to MongoDB failed: {exception}")

    def _log_retry(self, retry_state: RetryCallState) -> None:
        delay: float = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._log(f"Retrying connection to MongoDB in {delay:.2f}s")

    def _sleep(self, seconds: float) -> None:
        if self._closed.wait(seconds):
            raise OplogConnectionError("Connector was closed before a connection was established")

    def establish(
        self,
        retries: int | float = DEFAULT_RETRIES,
        backoff: wait_base | None = None,
    ) -> Collection:
        """Connect to MongoDB and resolve the oplog collection, making up to ``retries + 1`` attempts.

        Args:
            retries: Number of retries after the first failed attempt. ``math.inf`` retries forever.
            backoff: tenacity wait strategy between attempts. Defaults to `exponential_backoff`.

        Returns:
            The oplog collection.

        Raises:
            OplogNotFoundError: if the last attempt connected but found no oplog collection.
            OplogConnectionError: if every attempt failed, or the connector was closed while waiting.
        """
        if self.closed:
            raise OplogConnectionError("Connector was closed before a connection was established")
        retrying = Retrying(
            stop=stop_never if math.isinf(retries) else stop_after_attempt(int(retries) + 1),
            wait=backoff or exponential_backoff(),
            retry=retry_if_exception(self._retryable),
            after=self._log_failure,
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return retrying(self.connect)
        except OplogConnectionError:
            raise
        except (PyMongoError, OplogEmitterError) as exception:
            raise OplogConnectionError(f"Could not connect to MongoDB: {exception}") from exception

    def close(self) -> None:
        """Close the current client and abort any pending retry."""
        self._closed.set()
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()


def establish(
    url: str,
    log: LogFunction = default_log,
    credentials: Credentials | None = None,
    retries: int | float = DEFAULT_RETRIES,
    backoff: wait_base | None = None,
) -> Collection:
    """Open a connection to ``url`` and return its oplog collection. See `OplogConnector.establish`."""
    return OplogConnector(url, credentials=credentials, log=log).establish(retries, backoff)
