"""Tests for the single-instance lock and the controller entry point."""

import asyncio
import os
import signal
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

import pccontroller
from constants import DEFAULT_STATE_DIR, INSTANCE_LOCK_FILE
from instance_lock import InstanceLock, instance_lock_path


def test_second_lock_is_refused_until_first_is_released(tmp_path):
    path = tmp_path / "state" / INSTANCE_LOCK_FILE
    first, second = InstanceLock(path), InstanceLock(path)

    assert first.acquire() is True
    assert path.read_text() == str(os.getpid())
    assert second.acquire() is False
    assert second.held is False
    # The loser leaves the holder's PID in place.
    assert second.holder_pid() == os.getpid()

    first.release()
    first.release()
    assert second.acquire() is True
    second.release()


def test_context_manager_raises_when_held(tmp_path):
    path = tmp_path / INSTANCE_LOCK_FILE
    with InstanceLock(path):
        with pytest.raises(RuntimeError):
            with InstanceLock(path):
                pass
    with InstanceLock(path) as lock:
        assert lock.held


def test_lock_lives_next_to_the_shared_file(tmp_path):
    store_file = tmp_path / "shared.json"
    assert instance_lock_path({"backend": "file", "path": str(store_file)}) == tmp_path / INSTANCE_LOCK_FILE
    mqtt = instance_lock_path({"backend": "mqtt", "host": "broker"})
    assert mqtt == Path(DEFAULT_STATE_DIR).expanduser() / INSTANCE_LOCK_FILE


def _write_config(tmp_path, monkeypatch):
    store_file = tmp_path / "shared.json"
    config_file = tmp_path / "pccontroller.yaml"
    config_file.write_text(
        "endpoint:\n"
        "  base_url: https://pc.example.com\n"
        "store:\n"
        "  backend: file\n"
        f"  path: {store_file}\n"
    )
    monkeypatch.setenv("PCCONTROLLER_CONFIG", str(config_file))
    return config_file


def test_run_refuses_to_start_a_second_controller(tmp_path, monkeypatch):
    _write_config(tmp_path, monkeypatch)
    holder = InstanceLock(tmp_path / INSTANCE_LOCK_FILE)
    assert holder.acquire()
    try:
        with patch.object(pccontroller, "main", new=AsyncMock()) as main:
            with pytest.raises(SystemExit) as exc:
                pccontroller.run()
        assert exc.value.code == 1
        main.assert_not_called()
    finally:
        holder.release()


def test_run_holds_the_lock_while_serving(tmp_path, monkeypatch):
    config_file = _write_config(tmp_path, monkeypatch)
    seen = {}

    async def fake_main(config):
        seen["path"] = config["path"]
        seen["locked"] = not InstanceLock(tmp_path / INSTANCE_LOCK_FILE).acquire()

    with patch.object(pccontroller, "main", new=fake_main):
        pccontroller.run()

    assert seen == {"path": str(config_file), "locked": True}
    after = InstanceLock(tmp_path / INSTANCE_LOCK_FILE)
    assert after.acquire()
    after.release()


def test_run_exits_on_missing_config(tmp_path, monkeypatch):
    monkeypatch.setenv("PCCONTROLLER_CONFIG", str(tmp_path / "missing.yaml"))
    with pytest.raises(SystemExit):
        pccontroller.run()


@pytest.mark.asyncio
async def test_main_stops_the_app_on_shutdown_signal():
    started = asyncio.Event()
    apps = []

    class FakeApp:
        def __init__(self, config):
            self.stop = AsyncMock()
            apps.append(self)

        async def start(self):
            started.set()
            await asyncio.Event().wait()

    handlers = {}
    loop = asyncio.get_running_loop()

    def add_handler(sig, callback):
        handlers[sig] = callback

    with patch.object(pccontroller, "PCController", FakeApp), \
            patch.object(loop, "add_signal_handler", side_effect=add_handler), \
            patch.object(loop, "remove_signal_handler") as remove_handler:
        app_main = asyncio.create_task(pccontroller.main({}))
        await asyncio.wait_for(started.wait(), timeout=1.0)
        handlers[signal.SIGTERM]()
        await asyncio.wait_for(app_main, timeout=1.0)

    assert set(handlers) == {signal.SIGINT, signal.SIGTERM}
    assert remove_handler.call_count == 2
    apps[0].stop.assert_awaited_once()
