"""Main entry point for ClawTrap."""

import asyncio
import contextlib
import signal

from clawtrap.config import get_settings
from clawtrap.gateway.server import GatewayServer
from clawtrap.honeypot import Honeypot
from clawtrap.logging import get_logger, setup_logging
from clawtrap.reporting.forwarder import LogForwarder


async def main() -> None:
    """Main application entry point."""
    settings = get_settings()
    forwarder = LogForwarder(instance_id=settings.instance_id) if settings.forward_logs else None
    setup_logging(settings, forwarder=forwarder)
    log = get_logger("clawtrap.main")

    log.info(
        "starting_clawtrap",
        environment=settings.environment,
        instance_id=settings.instance_id,
        callback_configured=bool(settings.canary_callback_url),
    )

    honeypot = Honeypot.from_settings(settings)
    if forwarder is not None:
        forwarder.attach(honeypot.pipeline)

    gateway = GatewayServer(honeypot, host=settings.ws_host, port=settings.ws_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    await honeypot.start()
    try:
        await gateway.start()
        await stop_event.wait()
        log.info("shutdown_requested")
    finally:
        await gateway.stop()
        if forwarder is not None:
            forwarder.detach()
        await honeypot.stop()
        log.info("clawtrap_stopped")


def run() -> None:
    """Run the application."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
