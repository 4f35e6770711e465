import json
from datetime import date

import pytest
from typer.testing import CliRunner

from reminder_service import cli
from reminder_service.config import get_settings
from reminder_service.runtime import Collaborators

runner = CliRunner()


class Sheet:
    def __init__(self):
        self.rows = [["Report", "a@x.com", date.today().strftime("%m/%d/%Y"), "", ""]]
        self.written = []

    async def fetch_total_count(self, group):
        return len(self.rows) + 1

    async def fetch_page(self, group, start, end):
        return self.rows[start - 2 : end - 1]

    async def write_batch(self, group, units):
        self.written.extend(units)


class Outbox:
    async def send(self, message):
        pass


def make_collaborators(settings):
    sheet = Sheet()
    return Collaborators(source=sheet, notifier=Outbox(), writer=sheet)


@pytest.fixture(autouse=True)
def env(monkeypatch):
    monkeypatch.setenv("SPREADSHEETS", '[{"id": "abc", "sheets": ["Tasks", "Ops"]}]')
    monkeypatch.setenv("LOG_DIR", "")
    monkeypatch.delenv("REMINDER_COLLABORATORS", raising=False)
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_check_config_prints_groups():
    result = runner.invoke(cli.app, ["check-config"])

    assert result.exit_code == 0
    body = json.loads(result.stdout)
    assert body["groups"] == [
        {"document_id": "abc", "sheet": "Tasks"},
        {"document_id": "abc", "sheet": "Ops"},
    ]
    assert body["cron_schedule"] == "0 9 * * 1-5"
    assert body["concurrency"] == 5


def test_check_config_rejects_bad_cron(monkeypatch):
    monkeypatch.setenv("CRON_SCHEDULE", "whenever")
    get_settings.cache_clear()

    result = runner.invoke(cli.app, ["check-config"])

    assert result.exit_code == 1


def test_run_once_prints_summary(monkeypatch):
    monkeypatch.setenv("REMINDER_COLLABORATORS", f"{__name__}:make_collaborators")
    monkeypatch.setenv("SKIP_WEEKENDS", "false")
    monkeypatch.setenv("TIMEZONE", "UTC")
    monkeypatch.setenv("SPREADSHEETS", "abc")
    monkeypatch.setenv("SHEET_NAME", "Tasks")
    get_settings.cache_clear()

    result = runner.invoke(cli.app, ["run-once"])

    assert result.exit_code == 0
    body = json.loads(result.stdout)
    assert body["skipped"] is False
    assert body["groups"] == 1
    assert body["scanned"] == 1


def test_run_once_without_collaborators_exits():
    result = runner.invoke(cli.app, ["run-once"])
    assert result.exit_code == 1
