"""Tests for authorization strategies."""

import jwt
from fakes import OTHER_TARGET_ID, TARGET_ID

from controlwatch.authz import (
    AccessType,
    AuthorizationStrategyAllowAll,
    AuthorizationStrategyJWT,
    strategy_from_config,
)
from controlwatch.config import AuthorizationConfig


SIGNING_KEY = "signature-is-not-verified-by-the-service"


def _token(claims):
    return jwt.encode(claims, SIGNING_KEY, algorithm="HS256")


def test_allow_all():
    authz = AuthorizationStrategyAllowAll()
    assert authz.check_access(None, AccessType.UPDATE, TARGET_ID)
    assert authz.allowed_targets(None) == (True, [])


def test_jwt_claim_grants_listed_targets():
    authz = AuthorizationStrategyJWT()
    token = _token({"sub": "ops", "cloudserviceid": [TARGET_ID]})

    assert authz.check_access(token, AccessType.READ, TARGET_ID)
    assert not authz.check_access(token, AccessType.READ, OTHER_TARGET_ID)
    assert authz.allowed_targets(token) == (False, [TARGET_ID])


def test_jwt_custom_claim():
    authz = AuthorizationStrategyJWT(claim="targets")
    token = _token({"targets": [OTHER_TARGET_ID]})
    assert authz.check_access(token, AccessType.CREATE, OTHER_TARGET_ID)


def test_jwt_denies_by_default():
    authz = AuthorizationStrategyJWT()

    assert not authz.check_access(None, AccessType.UPDATE, TARGET_ID)
    assert not authz.check_access("garbage", AccessType.UPDATE, TARGET_ID)
    assert not authz.check_access(_token({"sub": "ops"}), AccessType.UPDATE, TARGET_ID)
    assert not authz.check_access(_token({"cloudserviceid": TARGET_ID}), AccessType.UPDATE, TARGET_ID)
    assert authz.allowed_targets(None) == (False, [])


def test_strategy_from_config():
    assert isinstance(strategy_from_config(AuthorizationConfig()), AuthorizationStrategyAllowAll)
    jwt_strategy = strategy_from_config(AuthorizationConfig(strategy="jwt", claim="targets"))
    assert isinstance(jwt_strategy, AuthorizationStrategyJWT)
    assert jwt_strategy.claim == "targets"
