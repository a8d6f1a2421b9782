"""
core/errors.py -- Exception taxonomy shared by every layer.

Only genuine failures are exceptions. A wrong password or an unknown
account found during a lookup are normal protocol outcomes and travel as
StatusCode values in the result objects instead (see core/status.py).

Mapping to the HTTP layer (api/main.py):
  DecodeError, InvalidRequestError -> 400
  StorageError and subclasses      -> 500 internal_error
  NotFoundError                    -> never reaches HTTP; protocols turn it
                                      into StatusCode.MISSING_PLAYER
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager


class RunAuthError(Exception):
    """Base class for all errors raised by the login core."""


class DecodeError(RunAuthError):
    """The inbound payload is not JSON or does not have the expected shape."""


class InvalidRequestError(RunAuthError):
    """The payload decoded fine but the combination of fields is meaningless."""


class NotFoundError(RunAuthError):
    """No Player record exists for the given identifier."""

    def __init__(self, player_id: str) -> None:
        super().__init__(f"player {player_id!r} not found")
        self.player_id = player_id


class StorageError(RunAuthError):
    """The underlying persistence layer failed on read or write."""


class StorageTimeoutError(StorageError):
    """A per-account lock could not be acquired within the storage timeout."""


class ConcurrentUpdateError(StorageError):
    """The record changed between read and write (version mismatch)."""


@contextmanager
def storage_errors(action: str, *causes: type[BaseException]) -> Iterator[None]:
    """Re-raise driver exceptions of the given types as StorageError.

    Usage:
        with storage_errors("Error saving player", SQLAlchemyError):
            conn.execute(...)

    The original exception is chained (raise ... from) so the traceback logged
    by the API layer still shows the driver error.
    """
    try:
        yield
    except causes as exc:
        raise StorageError(f"{action}: {exc.__class__.__name__}") from exc
