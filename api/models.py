"""
API request and response models for the login endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in accounts/models.py and the
result objects in auth/, which own the internal representation. Route
handlers map between the two.

The game client speaks camelCase JSON, so every model uses the to_camel
alias generator. Construct models with snake_case names; dump with
by_alias=True.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.migration import MigrationPasswordResult, MigrationResult
from auth.protocol import NO_USER_ID, LoginBranch, LoginResult
from core.status import StatusCode


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LineAuth(_CamelModel):
    """Credential block shared by login and migration requests.

    Missing fields take the "not supplied" sentinels, so {"lineAuth": {}} is
    a registration request.
    """

    user_id: str = Field(default=NO_USER_ID, max_length=64)
    password: str = Field(default="", max_length=255)
    migration_password: str = Field(default="", max_length=255)


class LoginRequest(_CamelModel):
    """Body of POST /Login/login and POST /Login/migration."""

    line_auth: LineAuth


class MigrationPasswordRequest(_CamelModel):
    """Body of POST /Login/getMigrationPassword."""

    session_id: str = Field(max_length=255)
    user_password: str = Field(max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class BaseInfo(_CamelModel):
    """Fields present on every response. server_time is Unix seconds."""

    status_code: int
    error_message: str
    server_time: int


class LoginRegisterResponse(BaseInfo):
    user_id: str
    password: str
    key: str


class LoginCheckKeyResponse(BaseInfo):
    key: str


class LoginSuccessResponse(BaseInfo):
    session_id: str
    user_name: str


class MigrationSuccessResponse(BaseInfo):
    session_id: str
    user_id: str
    user_name: str
    password: str


class MigrationPasswordResponse(BaseInfo):
    migration_password: str


class ErrorDetail(BaseModel):
    """Structured error payload used in all non-2xx responses."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(_CamelModel):
    """Envelope for all non-2xx responses.

    status_code mirrors the HTTP failure in the game client's own numbering
    (RequestParamError for 400, ServerSystemError for 500).
    """

    status_code: StatusCode
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Result -> response mapping
# ---------------------------------------------------------------------------


def login_response(result: LoginResult, server_time: int) -> BaseInfo:
    """Pick the response shape for a login outcome.

    Branch and status decide the shape together: a failed AUTHENTICATE
    carries only the base fields.
    """
    base = {
        "status_code": int(result.status),
        "error_message": result.error_message.value,
        "server_time": server_time,
    }
    if result.branch is LoginBranch.REGISTER:
        return LoginRegisterResponse(**base, user_id=result.player_id, password=result.password, key=result.key)
    if result.branch is LoginBranch.KEY_CHECK:
        return LoginCheckKeyResponse(**base, key=result.key)
    if result.session_id:
        return LoginSuccessResponse(**base, session_id=result.session_id, user_name=result.username)
    return BaseInfo(**base)


def migration_response(result: MigrationResult, server_time: int) -> BaseInfo:
    base = {
        "status_code": int(result.status),
        "error_message": result.error_message.value,
        "server_time": server_time,
    }
    if result.session_id:
        return MigrationSuccessResponse(
            **base,
            session_id=result.session_id,
            user_id=result.player_id,
            user_name=result.username,
            password=result.password,
        )
    return BaseInfo(**base)


def migration_password_response(result: MigrationPasswordResult, server_time: int) -> BaseInfo:
    base = {
        "status_code": int(result.status),
        "error_message": result.error_message.value,
        "server_time": server_time,
    }
    if result.migration_password:
        return MigrationPasswordResponse(**base, migration_password=result.migration_password)
    return BaseInfo(**base)
