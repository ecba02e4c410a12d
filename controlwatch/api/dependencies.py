"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Header, Request

from ..evaluation import EvaluationService


def get_service(request: Request) -> EvaluationService:
    return request.app.state.service


def bearer_token(authorization: str | None = Header(None)) -> str | None:
    """Token of an ``Authorization: Bearer <token>`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()
