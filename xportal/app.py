"""Application bootstrap for xportal.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s gateway → trace assembler → REST

Shutdown is graceful: components are stopped in reverse startup order and
each stop error is caught and logged independently.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from xportal.config import load_config
from xportal.models.config import XPortalConfig
from xportal.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from xportal.gateway.base import ResourceGateway
    from xportal.trace.assembler import TraceAssembler

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class XPortalApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self, config: XPortalConfig | None = None) -> None:
        self.config: XPortalConfig | None = config

        self._gateway: ResourceGateway | None = None
        self._assembler: TraceAssembler | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("xportal starting", version=_xportal_version())

        # --- 3. Kubernetes gateway ---------------------------------------
        await self._start_gateway()

        # --- 4. Trace assembler ------------------------------------------
        self._start_assembler()

        # --- 5. REST API -------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("xportal started", port=self.config.api.port)

    async def _start_gateway(self) -> None:
        """Build the kubernetes-asyncio gateway from in-cluster config or kubeconfig."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s gateway")
        try:
            from xportal.gateway.kubernetes import create_gateway

            self._gateway = await create_gateway(self.config.gateway)
        except Exception as exc:
            raise _ComponentError("gateway", exc) from exc

    def _start_assembler(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._gateway is not None
        from xportal.trace.assembler import TraceAssembler

        self._assembler = TraceAssembler(
            self._gateway,
            max_depth=self.config.trace.max_depth,
            default_namespace=self.config.trace.default_namespace,
            include_packages=self.config.trace.include_packages,
        )
        self._log.info("trace assembler ready", max_depth=self.config.trace.max_depth)

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from xportal.api import build_app

            fastapi_app = build_app(gateway=self._gateway, assembler=self._assembler, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("xportal shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]

        if self._background_tasks:
            _, pending = await asyncio.wait(self._background_tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None
        self._assembler = None

        if self._gateway is not None:
            try:
                await asyncio.wait_for(self._gateway.close(), timeout=_SHUTDOWN_GRACE_SECONDS)
            except TimeoutError:
                log.warning("gateway close timed out", timeout=_SHUTDOWN_GRACE_SECONDS)
            except Exception as exc:
                log.debug("gateway close raised (non-fatal)", error=str(exc))
            self._gateway = None

        log.info("xportal stopped")


def _xportal_version() -> str:
    from xportal import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: XPortalConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = XPortalApp(config)
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()
