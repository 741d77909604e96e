"""Tests for CLI commands: dispatch, preview, focus, weights, config, user and item subcommands."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from reprise.domain.errors import UserNotFoundError
from reprise.interface.cli import app

runner = CliRunner()


@pytest.fixture
def data_file(tmp_path, mock_home, monkeypatch):
    monkeypatch.delenv("REPRISE_RESEND_API_KEY", raising=False)
    monkeypatch.delenv("REPRISE_STORE", raising=False)
    return tmp_path / "data.yaml"


def invoke(data_file, *args):
    return runner.invoke(app, ["--data-file", str(data_file), *args])


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "spaced-repetition" in result.output
    assert "dispatch" in result.output
    assert "focus" in result.output


# --- Config ---


def test_config_show_masks_api_key(data_file, monkeypatch):
    monkeypatch.setenv("REPRISE_RESEND_API_KEY", "re_secret")

    result = invoke(data_file, "config", "show")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["resend_api_key"] == "***"
    assert data["data_file"] == str(data_file.resolve())


# --- End-to-end against a YAML file ---


def test_user_item_dispatch_flow(data_file):
    assert invoke(data_file, "user", "add", "alice", "alice@example.com", "--per-day", "2").exit_code == 0

    result = invoke(data_file, "item", "add", "alice", "Two Sum", "--link", "https://example.com/1")
    assert result.exit_code == 0
    assert "Added item_" in result.output

    doc = yaml.safe_load(data_file.read_text())
    assert doc["users"][0]["email"] == "alice@example.com"
    assert doc["items"][0]["title"] == "Two Sum"

    first = invoke(data_file, "dispatch")
    assert first.exit_code == 0
    assert "Sent: 1" in first.output
    assert "alice: sent" in first.output

    second = invoke(data_file, "dispatch")
    assert second.exit_code == 0
    assert "alice: already_sent" in second.output

    forced = invoke(data_file, "dispatch", "--force")
    assert "alice: sent" in forced.output


def test_item_revisit_and_archive(data_file):
    invoke(data_file, "user", "add", "alice", "alice@example.com")
    invoke(data_file, "item", "add", "alice", "Graph BFS")
    item_id = yaml.safe_load(data_file.read_text())["items"][0]["id"]

    result = invoke(data_file, "item", "revisit", "alice", item_id)
    assert result.exit_code == 0
    assert "1 total" in result.output

    again = invoke(data_file, "item", "revisit", "alice", item_id)
    assert again.exit_code == 1
    assert "already been revisited" in again.output

    assert invoke(data_file, "item", "archive", "alice", item_id).exit_code == 0
    assert yaml.safe_load(data_file.read_text())["items"][0]["status"] == "retired"


def test_focus_and_weights(data_file):
    invoke(data_file, "user", "add", "alice", "alice@example.com")

    empty = invoke(data_file, "focus", "alice")
    assert empty.exit_code == 0
    assert "Nothing to revisit today." in empty.output

    invoke(data_file, "item", "add", "alice", "Tries", "--link", "https://example.com/tries")

    result = invoke(data_file, "focus", "alice")
    assert result.exit_code == 0
    assert "[ ] 1. Tries" in result.output
    assert "Completed 0/1" in result.output

    as_json = json.loads(invoke(data_file, "focus", "alice", "--json").stdout)
    assert as_json["summary"] == {"total": 1, "completed": 0, "remaining": 1}

    weights = invoke(data_file, "weights", "alice")
    assert weights.exit_code == 0
    assert "Tries" in weights.output


def test_preview_json(data_file):
    invoke(data_file, "user", "add", "alice", "alice@example.com", "--email-time", "25:00")
    invoke(data_file, "item", "add", "alice", "Heaps")

    result = invoke(data_file, "preview", "alice", "--json")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["verdict"] == "invalid_config"
    assert len(data["items"]) == 1


def test_unknown_user_exits_1(data_file):
    result = invoke(data_file, "focus", "ghost")
    assert result.exit_code == 1
    assert "ghost" in result.output


# --- Dispatch edge cases ---


def _patched_services(run_sweep_result):
    services = MagicMock()
    services.sender.close = AsyncMock()
    services.orchestrator.run_sweep = AsyncMock(return_value=run_sweep_result)
    return services


@patch("reprise.interface.cli.build_services")
def test_dispatch_already_running(mock_build, data_file):
    mock_build.return_value = _patched_services(None)

    result = invoke(data_file, "dispatch")

    assert result.exit_code == 1
    assert "already running" in result.output


@patch("reprise.interface.cli.build_services")
def test_dispatch_aborted(mock_build, data_file):
    report = MagicMock(aborted=True, error="StoreUnavailableError: disk gone")
    mock_build.return_value = _patched_services(report)

    result = invoke(data_file, "dispatch")

    assert result.exit_code == 1
    assert "Sweep aborted" in result.output


@patch("reprise.interface.cli.build_services")
def test_preview_propagates_domain_error(mock_build, data_file):
    services = MagicMock()
    services.sender.close = AsyncMock()
    services.orchestrator.dry_run = AsyncMock(side_effect=UserNotFoundError("bob"))
    mock_build.return_value = services

    result = invoke(data_file, "preview", "bob")

    assert result.exit_code == 1


@patch("reprise.interface.cli.build_services")
def test_sender_is_closed_after_command(mock_build, data_file):
    services = _patched_services(MagicMock(aborted=False, outcomes=[], sent_count=0, failed_count=0, skipped_count=0))
    mock_build.return_value = services

    result = invoke(data_file, "dispatch")

    assert result.exit_code == 0
    services.sender.close.assert_awaited_once()


@patch("reprise.interface.cli.build_services")
def test_sender_is_closed_when_command_fails(mock_build, data_file):
    services = MagicMock()
    services.sender.close = AsyncMock()
    services.focus.get_todays_focus = AsyncMock(side_effect=UserNotFoundError("bob"))
    mock_build.return_value = services

    result = invoke(data_file, "focus", "bob")

    assert result.exit_code == 1
    services.sender.close.assert_awaited_once()


# --- Item management ---


def _item_id(data_file, index=0):
    return yaml.safe_load(data_file.read_text())["items"][index]["id"]


def test_item_list_show_update_delete(data_file):
    invoke(data_file, "user", "add", "alice", "alice@example.com")
    invoke(data_file, "item", "add", "alice", "Union Find", "--topic", "graphs")
    invoke(data_file, "item", "add", "alice", "Sliding Window")
    first = _item_id(data_file, 0)
    second = _item_id(data_file, 1)

    revisit = invoke(data_file, "item", "revisit", "alice", first, "--notes", "path compression")
    assert revisit.exit_code == 0

    shown = invoke(data_file, "item", "show", "alice", first)
    assert shown.exit_code == 0
    assert "Union Find" in shown.output
    assert "Revisited today: yes" in shown.output
    assert "path compression" in shown.output

    detail = json.loads(invoke(data_file, "item", "show", "alice", first, "--json").stdout)
    assert detail["item"]["history"][0]["notes"] == "path compression"
    assert detail["revisited_today"] is True

    assert invoke(data_file, "item", "update", "alice", second, "--title", "Sliding Window II").exit_code == 0
    assert invoke(data_file, "item", "archive", "alice", second).exit_code == 0

    listed = invoke(data_file, "item", "list", "alice")
    assert "Union Find" in listed.output
    assert "Sliding Window II" not in listed.output

    everything = invoke(data_file, "item", "list", "alice", "--all")
    assert "Sliding Window II" in everything.output
    assert "[retired]" in everything.output

    assert invoke(data_file, "item", "delete", "alice", second, "--yes").exit_code == 0
    as_json = json.loads(invoke(data_file, "item", "list", "alice", "--all", "--json").stdout)
    assert [i["id"] for i in as_json] == [first]


def test_item_delete_asks_for_confirmation(data_file):
    invoke(data_file, "user", "add", "alice", "alice@example.com")
    invoke(data_file, "item", "add", "alice", "Keep me")
    item_id = _item_id(data_file)

    result = runner.invoke(app, ["--data-file", str(data_file), "item", "delete", "alice", item_id], input="n\n")

    assert result.exit_code == 1
    assert _item_id(data_file) == item_id


def test_item_show_unknown_item(data_file):
    invoke(data_file, "user", "add", "alice", "alice@example.com")

    result = invoke(data_file, "item", "show", "alice", "item_missing")

    assert result.exit_code == 1
    assert "Item not found" in result.output


def test_send_now(data_file):
    invoke(data_file, "user", "add", "alice", "alice@example.com", "--email-time", "23:59")
    invoke(data_file, "item", "add", "alice", "Heaps")

    result = invoke(data_file, "send-now", "alice")

    assert result.exit_code == 0
    assert "alice <alice@example.com>: sent" in result.output
    assert yaml.safe_load(data_file.read_text())["users"][0]["last_email_sent_at"] is None


def test_user_add_rejects_bad_email_time(data_file):
    result = invoke(data_file, "user", "add", "alice", "alice@example.com", "--email-time", "7pm")

    assert result.exit_code == 1
    assert "Invalid email_time" in result.output
    assert not data_file.exists()


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9000"])
    assert result.exit_code == 0
    mock_run.assert_called_once_with("reprise.server:app", host="127.0.0.1", port=9000, reload=False)
