"""Authorization strategies for target-scoped requests."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

import jwt

from .config import AuthorizationConfig

logger = logging.getLogger(__name__)


class AccessType(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class AuthorizationStrategy(Protocol):
    def check_access(self, token: str | None, access: AccessType, target_id: str) -> bool: ...

    def allowed_targets(self, token: str | None) -> tuple[bool, list[str]]:
        """Return (all, ids): whether every target is allowed, else the allowed target IDs."""
        ...


class AuthorizationStrategyAllowAll:
    """Allows everything. For trusted internal callers and tests."""

    def check_access(self, token: str | None, access: AccessType, target_id: str) -> bool:
        return True

    def allowed_targets(self, token: str | None) -> tuple[bool, list[str]]:
        return True, []


class AuthorizationStrategyJWT:
    """Reads the allowed target IDs from a list claim of the bearer token.

    The token has already been authenticated upstream, so its signature is not verified
    here. A missing or malformed token, or a claim that is not a list, denies access.
    Access to *all* targets is never granted by this strategy.
    """

    def __init__(self, claim: str = "cloudserviceid"):
        self.claim = claim

    def check_access(self, token: str | None, access: AccessType, target_id: str) -> bool:
        _, allowed = self.allowed_targets(token)
        return target_id in allowed

    def allowed_targets(self, token: str | None) -> tuple[bool, list[str]]:
        if not token:
            return False, []
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as exc:
            logger.debug("Retrieving allowed targets from token failed: %s", exc)
            return False, []

        values = claims.get(self.claim)
        if not isinstance(values, list):
            logger.debug("Retrieving allowed targets from token failed: claim '%s' is not a list", self.claim)
            return False, []
        return False, [v for v in values if isinstance(v, str)]


def strategy_from_config(cfg: AuthorizationConfig) -> AuthorizationStrategy:
    if cfg.strategy == "jwt":
        return AuthorizationStrategyJWT(claim=cfg.claim)
    return AuthorizationStrategyAllowAll()
