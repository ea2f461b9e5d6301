"""Validation and defaulting of the OplogEmitter configuration."""

from __future__ import annotations

import re
import time
from collections.abc import Mapping
from concurrent.futures import Future
from dataclasses import dataclass
from logging import Logger, getLogger
from typing import Any, Callable, Union

from bson.timestamp import Timestamp

from oplog_emitter.errors import InvalidArgument

logger: Logger = getLogger(__name__)

MATCH_ALL: str = ".*"
DEFAULT_RETRIES: int = 5
DEFAULT_TIMESTAMP_TIMEOUT_MS: int = 30000
DEFAULT_MIN_BACKOFF_MS: int = 1000
DEFAULT_MAX_BACKOFF_MS: int = 30000

# camelCase spellings accepted in place of the option names
OPTION_ALIASES: dict[str, str] = {
    "oplogURL": "oplog_url",
    "getLastTimestamp": "get_last_timestamp",
    "timestampTimeout": "timestamp_timeout",
    "minBackoff": "min_backoff",
    "maxBackoff": "max_backoff",
}

CheckpointProvider = Callable[[], Union[Timestamp, Future]]
LogFunction = Callable[[str], None]


def get_last_timestamp() -> Timestamp:
    """Default checkpoint provider: a Timestamp at the current system time."""
    return Timestamp(int(time.time()), 0)


def default_log(message: str) -> None:
    """Default log sink, forwards to the ``oplog_emitter.options`` logger."""
    logger.info(message)


@dataclass(frozen=True)
class Credentials:
    """MongoDB username and password."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class OplogOptions:  # pylint: disable=too-many-instance-attributes
    """Fully defaulted emitter configuration, as returned by `validate_args`."""

    oplog_url: str
    get_last_timestamp: CheckpointProvider = get_last_timestamp
    database: str = MATCH_ALL
    collection: str = MATCH_ALL
    credentials: Credentials | None = None
    retries: int | float = DEFAULT_RETRIES
    log: LogFunction = default_log
    timestamp_timeout: int | float = DEFAULT_TIMESTAMP_TIMEOUT_MS
    min_backoff: int | float = DEFAULT_MIN_BACKOFF_MS
    max_backoff: int | float = DEFAULT_MAX_BACKOFF_MS

    @property
    def namespace_pattern(self) -> str:
        """Pattern searched in the ``ns`` field of every oplog entry."""
        return rf"{self.database}\.{self.collection}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_pattern(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidArgument(f"{name} should be a string")
    try:
        re.compile(value)
    except re.error as error:
        raise InvalidArgument(f"{name} should be a valid regular expression: {error}") from error
    return value


def _validate_credentials(credentials: Any) -> Credentials:
    if isinstance(credentials, Credentials):
        credentials = {"username": credentials.username, "password": credentials.password}
    if not isinstance(credentials, Mapping):
        raise InvalidArgument("credentials should be provided as an object")

    username = credentials.get("username")
    if not username or not isinstance(username, str):
        raise InvalidArgument("credentials should have an attribute username that is a string")
    password = credentials.get("password")
    if not password or not isinstance(password, str):
        raise InvalidArgument("credentials should have an attribute password that is a string")
    return Credentials(username=username, password=password)


def _resolve_aliases(args: Mapping[Any, Any]) -> dict[Any, Any]:
    resolved: dict[Any, Any] = {}
    for key, value in args.items():
        name = OPTION_ALIASES.get(key, key) if isinstance(key, str) else key
        if name in resolved:
            raise InvalidArgument(f"{name} is given more than once (as {key})")
        resolved[name] = value
    return resolved


def validate_args(args: str | Mapping[str, Any] | None) -> OplogOptions:
    """Validate the emitter arguments and fill in the defaults of optional settings.

    Args:
        args: A MongoDB connection string, or a mapping of options with at least ``oplog_url``. camelCase
            spellings (``oplogURL``, ``getLastTimestamp``, ``timestampTimeout``, ...) are accepted as well.

    Returns:
        The validated, immutable options.

    Raises:
        InvalidArgument: if an option is missing or has the wrong type.
    """
    if isinstance(args, str):
        args = {"oplog_url": args}
    if not isinstance(args, Mapping):
        raise InvalidArgument("argument should be a connection string or a map of options")
    args = _resolve_aliases(args)

    unknown = sorted(str(key) for key in set(args) - set(OplogOptions.__dataclass_fields__))
    if unknown:
        raise InvalidArgument(f"unknown options: {', '.join(unknown)}")

    if args.get("oplog_url") is None:
        raise InvalidArgument("oplog_url must be specified")
    if not isinstance(args["oplog_url"], str):
        raise InvalidArgument("oplog_url must be a string")

    options: dict[str, Any] = {"oplog_url": args["oplog_url"]}

    provider = args.get("get_last_timestamp", get_last_timestamp)
    if not callable(provider):
        raise InvalidArgument("get_last_timestamp should be a function that returns a bson.Timestamp")
    options["get_last_timestamp"] = provider

    options["database"] = _validate_pattern("database", args.get("database", MATCH_ALL))
    options["collection"] = _validate_pattern("collection", args.get("collection", MATCH_ALL))

    if args.get("credentials") is not None:
        options["credentials"] = _validate_credentials(args["credentials"])

    log = args.get("log", default_log)
    if not callable(log):
        raise InvalidArgument("log should be a function")
    options["log"] = log

    for name, default in (
        ("retries", DEFAULT_RETRIES),
        ("timestamp_timeout", DEFAULT_TIMESTAMP_TIMEOUT_MS),
        ("min_backoff", DEFAULT_MIN_BACKOFF_MS),
        ("max_backoff", DEFAULT_MAX_BACKOFF_MS),
    ):
        value = args.get(name, default)
        if not _is_number(value):
            raise InvalidArgument(f"{name} should be a number")
        if value < 0:
            raise InvalidArgument(f"{name} should not be negative")
        options[name] = value

    if options["min_backoff"] > options["max_backoff"]:
        raise InvalidArgument("min_backoff should not exceed max_backoff")

    return OplogOptions(**options)
