#!/usr/bin/env python3
"""PC controller: remote power control and status for one machine."""

import asyncio
import logging
import signal

from config import config_path, load_config
from instance_lock import InstanceLock, instance_lock_path
from pccontroller_app import PCController

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def setup_logging(config):
    level = str((config.get('logging') or {}).get('level', 'INFO')).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def main(config):
    """Run the controller until SIGINT or SIGTERM."""
    app = PCController(config)
    loop = asyncio.get_running_loop()
    serving = loop.create_task(app.start())

    def _shutdown():
        if not serving.done():
            logger.info("Shutting down...")
            serving.cancel()

    installed = []
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, _shutdown)
            installed.append(sig)
        except NotImplementedError:
            pass

    try:
        await serving
    except asyncio.CancelledError:
        pass
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        await app.stop()


def run():
    path = config_path()
    try:
        config = load_config(path)
    except (FileNotFoundError, ValueError) as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Configuration error: {e}")
        raise SystemExit(1)
    config['path'] = path
    setup_logging(config)

    lock = InstanceLock(instance_lock_path(config['store']))
    if not lock.acquire():
        logger.error(
            f"PC controller is already running (PID {lock.holder_pid()}), "
            f"only one instance can run at a time"
        )
        raise SystemExit(1)
    try:
        asyncio.run(main(config))
    finally:
        lock.release()


if __name__ == "__main__":
    run()
