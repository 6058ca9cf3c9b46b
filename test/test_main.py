from datetime import datetime, timezone
from unittest.mock import patch

import pytest

import main
from planner.config import Settings
from planner.github_client import HTTPStatusError, Issue

SETTINGS = Settings(github_token="ghp_test", owner="yztangent", project_number=2)


@pytest.fixture
def settings():
    with patch.object(main, "load_settings", return_value=SETTINGS) as load:
        yield load


def test_prints_issues(settings, capsys):
    issues = [
        Issue(number=12, title="Fix login", body="", updated_at=datetime(2023, 3, 4, 5, 6, tzinfo=timezone.utc)),
        Issue(number=9, title="Docs", body="", updated_at=datetime(2023, 2, 1, tzinfo=timezone.utc)),
    ]
    with patch.object(main.GitHubClient, "get_issues", return_value=issues) as get_issues:
        assert main.main(["--owner", "acme", "--project", "7", "--since", "2023-01-01"]) == 0

    owner, number, since, _ = get_issues.call_args.args
    assert (owner, number) == ("acme", 7)
    assert since == datetime(2023, 1, 1, tzinfo=timezone.utc)

    out = capsys.readouterr().out
    assert "Found \033[1m2\033[0m issues in project acme/7 updated since 2023-01-01:" in out
    assert "Fix login" in out and "(Updated: 2023-03-04)" in out


def test_uses_configured_project(settings):
    with patch.object(main.GitHubClient, "get_issues", return_value=[]) as get_issues:
        assert main.main([]) == 0
    assert get_issues.call_args.args[:2] == ("yztangent", 2)


def test_fetch_failure(settings, capsys):
    with patch.object(main.GitHubClient, "get_issues", side_effect=HTTPStatusError(401, "Unauthorized")):
        assert main.main([]) == 1
    assert "401 Unauthorized" in capsys.readouterr().err


def test_bad_since(settings, capsys):
    assert main.main(["--since", "not a date"]) == 2
    assert "Invalid --since" in capsys.readouterr().err


def test_missing_token(monkeypatch, tmp_path, capsys):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    assert main.main(["--env-file", str(tmp_path / "missing.env")]) == 2
    assert "GITHUB_TOKEN" in capsys.readouterr().err


def test_resolve_since_days():
    since = main.resolve_since(None, 30)
    delta = datetime.now(timezone.utc) - since
    assert 29.9 < delta.total_seconds() / 86400 < 30.1
