"""Process lifecycle: bind, serve, and shut down once on SIGINT/SIGTERM.

A second signal while shutting down is ignored rather than forcing an exit,
so in-flight responses still complete and cleanups run exactly once.
"""

import asyncio
import inspect
import signal
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

import uvicorn
from loguru import logger

Cleanup = Callable[[], Union[None, Awaitable[None]]]

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 3
DEFAULT_SHUTDOWN_TIMEOUT = 30  # seconds before open connections are dropped


class ShutdownCoordinator:
    """Stops the attached server and runs cleanup callbacks, idempotently"""

    def __init__(self, cleanups: Optional[Iterable[Cleanup]] = None):
        self._cleanups = list(cleanups or [])
        self._server: Optional[Any] = None
        self._shutdown_requested = False
        self._cleaned_up = False

    def attach(self, server: Any) -> None:
        """Attach anything with a `should_exit` flag (a uvicorn.Server)"""
        self._server = server
        if self._shutdown_requested:
            server.should_exit = True

    @property
    def server(self) -> Optional[Any]:
        return self._server

    def add_cleanup(self, callback: Cleanup) -> None:
        self._cleanups.append(callback)

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    def request_shutdown(self, reason: str = "shutdown requested") -> bool:
        """Ask the server to stop accepting connections.

        Returns False if shutdown was already in progress.
        """
        if self._shutdown_requested:
            logger.info(f"Shutdown already in progress, ignoring {reason}")
            return False
        self._shutdown_requested = True
        logger.info(f"Shutting down server ({reason})...")
        if self._server is not None:
            self._server.should_exit = True
        return True

    async def run_cleanups(self) -> None:
        """Run cleanups in reverse registration order, once"""
        if self._cleaned_up:
            return
        self._cleaned_up = True
        for callback in reversed(self._cleanups):
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Cleanup {getattr(callback, '__qualname__', callback)} failed")


class ManagedServer(uvicorn.Server):
    """uvicorn server whose exit signals go through a ShutdownCoordinator"""

    def __init__(self, config: uvicorn.Config, coordinator: ShutdownCoordinator):
        super().__init__(config)
        self.coordinator = coordinator
        coordinator.attach(self)

    def handle_exit(self, sig: int, frame) -> None:
        try:
            name = signal.Signals(sig).name
        except ValueError:
            name = f"signal {sig}"
        self.coordinator.request_shutdown(name)


def build_server(
    app: Any,
    host: str,
    port: int,
    coordinator: ShutdownCoordinator,
    shutdown_timeout: int = DEFAULT_SHUTDOWN_TIMEOUT,
) -> ManagedServer:
    config = uvicorn.Config(app, host=host, port=port, timeout_graceful_shutdown=shutdown_timeout)
    return ManagedServer(config, coordinator)


def serve(
    app: Any,
    host: str,
    port: int,
    coordinator: ShutdownCoordinator,
    shutdown_timeout: int = DEFAULT_SHUTDOWN_TIMEOUT,
) -> int:
    """Serve `app` until a termination signal arrives. Returns the process exit code.

    In-flight responses get `shutdown_timeout` seconds to finish once
    shutdown starts; after that open connections are dropped.
    """
    server = build_server(app, host, port, coordinator, shutdown_timeout)

    async def _main() -> None:
        try:
            await server.serve()
        finally:
            await coordinator.run_cleanups()

    try:
        asyncio.run(_main())
    except SystemExit:
        # uvicorn exits when it cannot bind
        pass
    if not server.started:
        logger.error(f"Server failed to start on {host}:{port}")
        return EXIT_STARTUP_FAILURE
    logger.info("Server closed")
    return EXIT_OK
