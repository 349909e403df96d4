"""Daemon lifecycle management."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
from dataclasses import dataclass, field
from pathlib import Path

import structlog
import uvicorn

from docplane.config.constants import PID_FILE, PORT_FILE
from docplane.config.models import DocPlaneConfig
from docplane.core.errors import EmbeddingInitFailure
from docplane.mcp.context import AppContext

logger = structlog.get_logger()


@dataclass
class ServerController:
    """Owns the shared AppContext and the embedding warm-up task."""

    config: DocPlaneConfig
    context: AppContext

    _init_task: asyncio.Task[None] | None = field(default=None, init=False)
    _shutdown_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    async def start(self) -> None:
        """Start background work. Model loading never blocks serving."""
        logger.info("server starting", model=self.config.embedding.model_name)

        if self.config.embedding.eager_init:
            self._init_task = asyncio.create_task(self._warm_up())

        base_url = f"http://{self.config.server.host}:{self.config.server.port}"
        logger.info("server started")
        logger.info("endpoint", name="mcp", url=f"{base_url}/mcp")
        logger.info("endpoint", name="health", url=f"{base_url}/health")
        logger.info("endpoint", name="status", url=f"{base_url}/status")

    async def _warm_up(self) -> None:
        try:
            await self.context.provider.ainitialize()
        except EmbeddingInitFailure as e:
            # Server keeps running; queries report the failure
            logger.error("embedding_warm_up_failed", error=e.message)

    async def stop(self) -> None:
        """Wait briefly for warm-up, then signal shutdown complete."""
        logger.info("server stopping")
        if self._init_task is not None and not self._init_task.done():
            # The model load runs in a worker thread and cannot be interrupted
            try:
                async with asyncio.timeout(self.config.server.shutdown_timeout_sec):
                    await asyncio.shield(self._init_task)
            except TimeoutError:
                logger.warning(
                    "server_stop_timeout",
                    message="Embedding model still loading at shutdown",
                )
        self._shutdown_event.set()
        logger.info("server stopped")

    def wait_for_shutdown(self) -> asyncio.Event:
        return self._shutdown_event


def write_pid_file(state_dir: Path, port: int) -> None:
    """Write PID and port files for daemon discovery."""
    state_dir.mkdir(parents=True, exist_ok=True)
    pid_path = state_dir / PID_FILE
    port_path = state_dir / PORT_FILE

    pid_path.write_text(str(os.getpid()))
    port_path.write_text(str(port))

    logger.debug("pid_file_written", pid_path=str(pid_path), port=port)


def remove_pid_file(state_dir: Path) -> None:
    for path in (state_dir / PID_FILE, state_dir / PORT_FILE):
        with contextlib.suppress(FileNotFoundError):
            path.unlink()


def read_server_info(state_dir: Path) -> tuple[int, int] | None:
    """Read daemon PID and port from files. Returns (pid, port) or None."""
    try:
        pid = int((state_dir / PID_FILE).read_text().strip())
        port = int((state_dir / PORT_FILE).read_text().strip())
        return (pid, port)
    except (FileNotFoundError, ValueError):
        return None


def is_server_running(state_dir: Path) -> bool:
    """Check PID file and process; stale files are removed."""
    info = read_server_info(state_dir)
    if info is None:
        return False

    pid, _ = info
    try:
        os.kill(pid, 0)
        return True
    except (OSError, ProcessLookupError):
        remove_pid_file(state_dir)
        return False


async def run_server(config: DocPlaneConfig, context: AppContext | None = None) -> None:
    """Run the daemon until shutdown signal."""
    from docplane.daemon.app import create_app

    if context is None:
        context = AppContext.create(config)

    controller = ServerController(config=config, context=context)
    app = create_app(controller)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="warning",  # Use structlog instead
        ws="none",  # MCP uses streamable HTTP, not websockets
    )
    server = uvicorn.Server(uvicorn_config)

    state_dir = config.server.state_path
    write_pid_file(state_dir, config.server.port)

    # Second signal forces immediate exit
    loop = asyncio.get_running_loop()
    shutdown_count = 0
    force_exit_task: asyncio.Task[None] | None = None

    async def force_exit_after_timeout() -> None:
        await asyncio.sleep(config.server.shutdown_timeout_sec)
        logger.info("forcing_exit_after_timeout")
        server.force_exit = True

    def signal_handler() -> None:
        nonlocal shutdown_count, force_exit_task
        shutdown_count += 1
        logger.info("shutdown_signal_received", count=shutdown_count)
        server.should_exit = True
        if shutdown_count == 1:
            force_exit_task = loop.create_task(force_exit_after_timeout())
        else:
            server.force_exit = True
            if force_exit_task:
                force_exit_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await controller.start()
        await server.serve()
    finally:
        await controller.stop()
        remove_pid_file(state_dir)


def stop_daemon(state_dir: Path) -> bool:
    """Stop a running daemon by sending SIGTERM. Returns True if signalled."""
    info = read_server_info(state_dir)
    if info is None:
        return False

    pid, _ = info
    try:
        os.kill(pid, signal.SIGTERM)
        logger.info("daemon_stop_signal_sent", pid=pid)
        return True
    except (OSError, ProcessLookupError):
        remove_pid_file(state_dir)
        return False
