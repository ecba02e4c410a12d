"""Tests for the controlwatch CLI."""

from fakes import make_result
from typer.testing import CliRunner

from controlwatch.cli import app
from controlwatch.config import AppConfig
from controlwatch.db.store import EvaluationResultStore

runner = CliRunner()


def test_init_config(tmp_path, monkeypatch):
    monkeypatch.delenv("CONTROLWATCH_DATABASE_URL", raising=False)
    out = tmp_path / "config.yaml"

    result = runner.invoke(app, ["init-config", "--out", str(out)])

    assert result.exit_code == 0
    assert AppConfig.load(out) == AppConfig()

    result = runner.invoke(app, ["init-config", "--out", str(out)])
    assert result.exit_code == 1


def test_init_db(tmp_path):
    db = tmp_path / "results.db"

    result = runner.invoke(app, ["init-db", "--database-url", f"sqlite:///{db}"])

    assert result.exit_code == 0
    assert db.exists()


def test_results(tmp_path, monkeypatch):
    monkeypatch.delenv("CONTROLWATCH_DATABASE_URL", raising=False)
    url = f"sqlite:///{tmp_path / 'results.db'}"
    cfg = AppConfig(database_url=url)
    config_path = tmp_path / "config.yaml"
    cfg.save(config_path)
    EvaluationResultStore.from_url(url).create(make_result("C2"))

    result = runner.invoke(app, ["results", "--config", str(config_path)], env={"COLUMNS": "200"})

    assert result.exit_code == 0, result.output
    assert "Organisation/C2" in result.output
    assert "COMPLIANT" in result.output


def test_results_empty(tmp_path, monkeypatch):
    monkeypatch.setenv("CONTROLWATCH_DATABASE_URL", f"sqlite:///{tmp_path / 'empty.db'}")
    monkeypatch.setenv("CONTROLWATCH_CONFIG", str(tmp_path / "missing.yaml"))

    result = runner.invoke(app, ["results"])

    assert result.exit_code == 0
    assert "No evaluation results" in result.output
