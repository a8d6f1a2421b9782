"""
api/dependencies.py -- FastAPI Depends() helpers that decode request bodies.

The game client does not always send a Content-Type header, so bodies are
read raw and validated here instead of letting FastAPI parse them. Anything
that is not JSON of the expected shape raises DecodeError, which
api/main.py turns into a 400 before any protocol code runs.
"""

from __future__ import annotations

from fastapi import Request
from pydantic import ValidationError

from api.models import LoginRequest, MigrationPasswordRequest
from core.errors import DecodeError


async def _decode(request: Request, model):
    raw = await request.body()
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(f"Error unmarshalling {model.__name__}: {exc.error_count()} error(s)") from exc


async def login_request(request: Request) -> LoginRequest:
    return await _decode(request, LoginRequest)


async def migration_password_request(request: Request) -> MigrationPasswordRequest:
    return await _decode(request, MigrationPasswordRequest)
