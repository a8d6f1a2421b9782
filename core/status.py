"""
core/status.py -- Status codes and error messages carried in every response body.

The game client branches on statusCode, not on the HTTP status. These values
are part of the wire contract: never renumber them.
"""

from enum import Enum, IntEnum


class StatusCode(IntEnum):
    OK = 0
    REQUEST_PARAM_ERROR = -10100
    MISSING_PLAYER = -10102
    EXPIRATION_SESSION = -10103
    INVALID_PASSWORD = -10104
    SERVER_SYSTEM_ERROR = -19999


class ErrorMessage(str, Enum):
    OK = "OK"
    BAD_PASSWORD = "Bad password"
    MISSING_PLAYER = "Missing player"
    EXPIRED_SESSION = "Expired session"
