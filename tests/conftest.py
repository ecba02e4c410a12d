"""Shared fixtures: an in-memory orchestrator, an in-memory result store and a service."""

import pytest
from fakes import CATALOG_ID, TARGET_ID, Clock, FakeOrchestrator, make_catalog

from controlwatch.authz import AuthorizationStrategyAllowAll
from controlwatch.catalog import TargetOfEvaluation
from controlwatch.config import AppConfig
from controlwatch.db.store import EvaluationResultStore
from controlwatch.evaluation import EvaluationService


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def orchestrator():
    return FakeOrchestrator(catalogs=[make_catalog()])


@pytest.fixture
def store():
    return EvaluationResultStore.from_url("sqlite:///:memory:")


@pytest.fixture
def service(store, orchestrator, clock):
    svc = EvaluationService(
        AppConfig(),
        store=store,
        orchestrator=orchestrator,
        authz=AuthorizationStrategyAllowAll(),
        start_scheduler=False,
        now=clock,
    )
    yield svc
    svc.shutdown()


@pytest.fixture
def toe():
    return TargetOfEvaluation(target_id=TARGET_ID, catalog_id=CATALOG_ID)
