"""Resolution of the oplog position the emitter resumes from."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Any

from bson.timestamp import Timestamp

from oplog_emitter.errors import CheckpointError, CheckpointTimeoutError, InvalidCheckpointError
from oplog_emitter.options import DEFAULT_TIMESTAMP_TIMEOUT_MS, CheckpointProvider, LogFunction, default_log


def resolve_checkpoint(
    provider: CheckpointProvider,
    timeout_ms: int | float = DEFAULT_TIMESTAMP_TIMEOUT_MS,
    log: LogFunction = default_log,
) -> Timestamp:
    """Call the checkpoint provider once and wait at most ``timeout_ms`` for its result.

    The provider runs on a daemon thread, so a provider that never returns cannot keep the interpreter alive. It may
    return a Timestamp directly or a ``concurrent.futures.Future`` resolving to one.

    Raises:
        CheckpointTimeoutError: if the provider did not settle before the timeout.
        InvalidCheckpointError: if the provider settled to anything but a ``bson.Timestamp``.
        CheckpointError: if the provider raised.
    """
    outcome: dict[str, Any] = {}
    settled = threading.Event()

    def run() -> None:
        try:
            value = provider()
            if isinstance(value, Future):
                value = value.result()
            outcome["value"] = value
        except Exception as exception:  # pylint: disable=broad-exception-caught
            outcome["error"] = exception
        finally:
            settled.set()

    threading.Thread(target=run, name="oplog-emitter-checkpoint", daemon=True).start()
    if not settled.wait(timeout_ms / 1000):
        log(f"get_last_timestamp did not resolve within {timeout_ms}ms")
        raise CheckpointTimeoutError()

    if "error" in outcome:
        log(f"get_last_timestamp failed: {outcome['error']}")
        raise CheckpointError(f"get_last_timestamp failed: {outcome['error']}") from outcome["error"]

    checkpoint = outcome["value"]
    if not isinstance(checkpoint, Timestamp):
        raise InvalidCheckpointError()
    log(f"Resuming oplog after {checkpoint!r}")
    return checkpoint
