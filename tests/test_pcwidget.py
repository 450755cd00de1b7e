"""Tests for the display-side CLI."""

import asyncio
from datetime import datetime, timezone

from click.testing import CliRunner

from action_mailbox import ControllerMailbox
from constants import KEY_ACTION, KEY_ACTION_TIME
from models import EndpointSummary, Status, StatusSnapshot
from pcwidget import cli, format_snapshot
from shared_store import MemoryStore


async def _noop(request):
    pass


def _invoke(store, *args):
    return CliRunner().invoke(cli, list(args), obj={"store_factory": lambda: store})


def test_request_writes_action_and_shows_snapshot():
    store = MemoryStore()
    result = _invoke(store, "request", "turn-on", "--wait", "0")

    assert result.exit_code == 0, result.output
    assert "Requested turn-on" in result.output
    assert "PC status: Unknown" in result.output
    data = store.snapshot()
    assert data[KEY_ACTION] == "turn-on"
    assert float(data[KEY_ACTION_TIME]) > 0


def test_request_rejects_unknown_action():
    result = _invoke(MemoryStore(), "request", "reboot")
    assert result.exit_code != 0
    assert "reboot" in result.output


def test_status_prints_published_snapshot():
    store = MemoryStore()
    snapshot = StatusSnapshot(
        status=Status.OFFLINE,
        endpoint=EndpointSummary(base_url="https://pc.example.com", is_valid=True),
        last_error="Request timed out",
    )
    asyncio.run(ControllerMailbox(store, _noop).publish_snapshot(snapshot))

    result = _invoke(store, "status")
    assert result.exit_code == 0, result.output
    assert "PC status: Offline" in result.output
    assert "Endpoint: https://pc.example.com" in result.output
    assert "Error: Request timed out" in result.output


def test_missing_config_is_a_clean_error(tmp_path):
    result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "status"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_format_snapshot_marks_invalid_endpoint():
    snapshot = StatusSnapshot(
        status=Status.UNKNOWN,
        observed_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        endpoint=EndpointSummary(base_url="https://10.0.0.1", is_valid=False),
    )
    text = format_snapshot(snapshot)
    assert "Endpoint: https://10.0.0.1 (invalid)" in text
    assert "Last updated:" in text
