"""Tests for the evaluation result store."""

from datetime import timedelta, timezone

import pytest
from fakes import CATALOG_ID, OTHER_TARGET_ID, START, TARGET_ID, make_result
from sqlalchemy.exc import IntegrityError

from controlwatch.db.models import EvaluationStatus


def test_create_and_get(store):
    result = make_result("C1.1", "C1", status=EvaluationStatus.NOT_COMPLIANT)
    result.failing_assessment_result_ids = ["a-1", "a-2"]
    store.create(result)

    loaded = store.get(result.id)

    assert loaded.control_id == "C1.1"
    assert loaded.parent_control_id == "C1"
    assert loaded.status == EvaluationStatus.NOT_COMPLIANT
    assert loaded.failing_assessment_result_ids == ["a-1", "a-2"]
    assert loaded.timestamp == START
    assert loaded.timestamp.tzinfo == timezone.utc
    assert store.get("missing") is None


def test_list_filters(store):
    store.create(make_result("C1.1", "C1", timestamp=START + timedelta(minutes=2)))
    store.create(make_result("C2", timestamp=START))
    store.create(make_result("C2", target_id=OTHER_TARGET_ID))
    store.create(make_result("X1", catalog_id="other"))

    assert [r.control_id for r in store.list(target_id=TARGET_ID, catalog_id=CATALOG_ID)] == ["C2", "C1.1"]
    assert len(store.list(control_id="C2")) == 2
    assert [r.target_id for r in store.list(target_ids=[OTHER_TARGET_ID])] == [OTHER_TARGET_ID]
    assert store.list(target_ids=[]) == []


def test_valid_manual_only(store):
    store.create(make_result("C2", status=EvaluationStatus.COMPLIANT_MANUALLY, valid_until=START + timedelta(hours=1)))
    store.create(make_result("C2", status=EvaluationStatus.COMPLIANT))

    assert len(store.list(valid_manual_only=True, now=START)) == 1
    assert store.list(valid_manual_only=True, now=START + timedelta(hours=1)) == []


def test_failed_write_is_rolled_back(store):
    result = store.create(make_result("C2"))
    duplicate = make_result("C1.1")
    duplicate.id = result.id

    with pytest.raises(IntegrityError):
        store.create(duplicate)

    store.create(make_result("C1.2"))
    assert len(store.list()) == 2
