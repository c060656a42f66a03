import pytest

from job_aggregator.cli import main


def test_healthcheck_passes_with_writable_state_db(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("STATE_DB_PATH", str(tmp_path / "state.sqlite"))
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
    monkeypatch.delenv("JOOBLE_API_KEY", raising=False)

    assert main(["healthcheck"]) == 0

    out = capsys.readouterr().out
    assert "healthcheck passed" in out
    assert "jooble provider will be skipped" in out
    assert (tmp_path / "state.sqlite").exists()


def test_invalid_config_returns_exit_code_one(monkeypatch, capsys) -> None:
    monkeypatch.setenv("SLACK_WEBHOOK_URL", "http://insecure.test")

    assert main(["healthcheck"]) == 1
    assert "https" in capsys.readouterr().out


def test_alerts_list_on_empty_store(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("STATE_DB_PATH", str(tmp_path / "state.sqlite"))
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)

    assert main(["alerts", "list"]) == 0
    assert "total_alerts=0" in capsys.readouterr().out


def test_unknown_alert_id_returns_exit_code_one(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("STATE_DB_PATH", str(tmp_path / "state.sqlite"))
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)

    assert main(["alerts", "toggle", "missing"]) == 1
    assert "job alert not found: missing" in capsys.readouterr().out


def test_subcommand_is_required() -> None:
    with pytest.raises(SystemExit):
        main([])
