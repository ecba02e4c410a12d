"""Tests for turning assessment results into a control status."""

from datetime import timedelta

from fakes import START, assessment

from controlwatch.db.models import EvaluationStatus
from controlwatch.evaluation import compute_compliance, worst_status

SINCE = START - timedelta(hours=24)


def test_no_results_is_pending():
    assert compute_compliance([], ["M1"], SINCE) == (EvaluationStatus.PENDING, [])


def test_all_compliant():
    results = [assessment("M1"), assessment("M2", resource_id="vm-2")]
    assert compute_compliance(results, ["M1", "M2"], SINCE) == (EvaluationStatus.COMPLIANT, [])


def test_any_non_compliant():
    results = [
        assessment("M1"),
        assessment("M2", compliant=False, result_id="b"),
        assessment("M2", compliant=False, resource_id="vm-2", result_id="a"),
    ]
    status, failing = compute_compliance(results, ["M1", "M2"], SINCE)
    assert status == EvaluationStatus.NOT_COMPLIANT
    assert failing == ["a", "b"]


def test_most_recent_result_per_resource_and_metric_counts():
    results = [
        assessment("M1", compliant=True, timestamp=START - timedelta(minutes=1)),
        assessment("M1", compliant=False, timestamp=START - timedelta(minutes=30), result_id="old"),
    ]
    assert compute_compliance(results, ["M1"], SINCE) == (EvaluationStatus.COMPLIANT, [])


def test_results_before_window_are_ignored():
    results = [assessment("M1", compliant=False, timestamp=SINCE - timedelta(seconds=1))]
    assert compute_compliance(results, ["M1"], SINCE) == (EvaluationStatus.PENDING, [])


def test_results_of_other_metrics_are_ignored():
    results = [assessment("M9", compliant=False)]
    assert compute_compliance(results, ["M1"], SINCE) == (EvaluationStatus.PENDING, [])


def test_worst_status():
    assert worst_status([]) == EvaluationStatus.PENDING
    assert worst_status([EvaluationStatus.COMPLIANT]) == EvaluationStatus.COMPLIANT
    assert (
        worst_status([EvaluationStatus.COMPLIANT, EvaluationStatus.PENDING]) == EvaluationStatus.PENDING
    )
    assert (
        worst_status([EvaluationStatus.NOT_COMPLIANT, EvaluationStatus.PENDING, EvaluationStatus.COMPLIANT])
        == EvaluationStatus.NOT_COMPLIANT
    )
