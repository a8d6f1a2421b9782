"""
api/routes/v1/login.py -- Login and migration endpoints.

Routes:
  POST /api/v1/Login/login                 -- register / key check / authenticate
  POST /api/v1/Login/migration             -- move an account to a new device
  POST /api/v1/Login/getMigrationPassword  -- set user password, read migration password

All three answer HTTP 200 whenever the protocol produced an outcome; the
game-level result is in statusCode. HTTP errors are reserved for undecodable
bodies (400), meaningless requests (400) and storage failures (500), handled
in api/main.py.

Handlers are plain `def` so FastAPI runs them in its threadpool; the
protocols block on SQLite.

Path casing follows the game client, which requests /Login/... verbatim.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import login_request, migration_password_request
from api.models import (
    LoginRequest,
    MigrationPasswordRequest,
    login_response,
    migration_password_response,
    migration_response,
)
from auth.migration import MigrationProtocol
from auth.protocol import AuthProtocol

router = APIRouter()


def _respond(model) -> JSONResponse:
    resp = JSONResponse(content=model.model_dump(by_alias=True))
    resp.headers["Cache-Control"] = "no-store"  # responses carry credentials
    return resp


@router.post("/Login/login")
def login(request: Request, body: LoginRequest = Depends(login_request)) -> JSONResponse:
    """Run the login state machine for one request."""
    auth: AuthProtocol = request.app.state.auth
    result = auth.login(body.line_auth.user_id, body.line_auth.password)
    return _respond(login_response(result, int(time.time())))


@router.post("/Login/migration")
def migration(request: Request, body: LoginRequest = Depends(login_request)) -> JSONResponse:
    """Migrate an account using the player's user password and migration password.

    lineAuth.migrationPassword carries the user password (lookup) and
    lineAuth.password carries the migration password (authorization).
    """
    migrations: MigrationProtocol = request.app.state.migration
    result = migrations.migrate(body.line_auth.migration_password, body.line_auth.password)
    return _respond(migration_response(result, int(time.time())))


@router.post("/Login/getMigrationPassword")
def get_migration_password(
    request: Request,
    body: MigrationPasswordRequest = Depends(migration_password_request),
) -> JSONResponse:
    """Store the caller's user password and return their migration password."""
    migrations: MigrationProtocol = request.app.state.migration
    result = migrations.set_user_password(body.session_id, body.user_password)
    return _respond(migration_password_response(result, int(time.time())))
