"""
Config Service - Agent Configuration Cache

Responsible for:
- Refreshing the agent config snapshot from Elasticsearch (every 30 seconds)
- Serving point lookups from the in-memory snapshot
- Exposing health and config lookups over HTTP
"""

import asyncio
import signal
from datetime import datetime, timezone

import httpx
from aiohttp import web

from agentconf.common.config import Settings, load_settings
from agentconf.common.exceptions import ConfigInvalidError, NotReadyError
from agentconf.common.logging_setup import get_service_logger, set_log_level

from .cache import CacheStore, ReadinessGate
from .dispatcher import QueryDispatcher
from .matcher import Matcher, match_exact
from .models import Query, ReadinessState
from .refresh import RefreshScheduler
from .sync import PageFetcher, build_client

logger = get_service_logger("config")


class ConfigService:
    """
    Agent config service.

    Wires the refresh loop to the cache and answers lookups:
    - GET /health - readiness, snapshot size, refresh stats
    - GET /config?service.name=...&service.environment=... - matching settings
    """

    def __init__(
        self,
        settings: Settings | None = None,
        matcher: Matcher = match_exact,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or load_settings()

        # Reuse a caller-provided client; otherwise we own (and close) ours
        self._owns_client = client is None
        self.client = client or build_client(self.settings.elasticsearch)

        cache_settings = self.settings.cache
        self.store = CacheStore()
        self.gate = ReadinessGate()
        self.fetcher = PageFetcher(
            self.client,
            index=self.settings.elasticsearch.index,
            cursor_keepalive_s=cache_settings.refresh_interval_s,
            timeout_s=cache_settings.refresh_timeout_s,
            page_size=cache_settings.page_size,
            clear_cursor_timeout_s=cache_settings.clear_cursor_timeout_s,
        )
        self.scheduler = RefreshScheduler(
            self.fetcher,
            self.store,
            self.gate,
            interval_s=cache_settings.refresh_interval_s,
        )
        self.dispatcher = QueryDispatcher(self.store, self.gate, matcher)

        self._start_time = datetime.now(timezone.utc)
        self._http_runner: web.AppRunner | None = None
        self._refresh_task: asyncio.Task | None = None
        self._shutdown_event = asyncio.Event()

    def create_app(self) -> web.Application:
        """Build the HTTP application"""
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        app.router.add_get("/config", self._config_handler)
        return app

    async def start(self) -> None:
        """Start the service and block until shutdown"""
        logger.info("Starting Config Service")

        await self._start_http_server()

        self._refresh_task = self.scheduler.start()
        self._refresh_task.add_done_callback(self._on_refresh_done)

        self._setup_signal_handlers()

        # Wait for shutdown
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the service"""
        logger.info("Stopping Config Service")

        if self._refresh_task:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

        if self._http_runner:
            await self._http_runner.cleanup()
            self._http_runner = None

        if self._owns_client:
            await self.client.aclose()

        logger.info("Config Service stopped")

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        """Log why the refresh loop ended; the HTTP surface keeps serving"""
        if task.cancelled():
            return
        error = task.exception()
        if error:
            logger.error(f"Refresh loop crashed: {error!r}")
        else:
            logger.warning(
                "Refresh loop ended, serving "
                f"{'stale snapshot' if self.gate.state == ReadinessState.READY else 'errors'}"
            )

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: self._handle_shutdown())

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal"""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    async def _start_http_server(self) -> None:
        """Start the HTTP server"""
        self._http_runner = web.AppRunner(self.create_app())
        await self._http_runner.setup()

        host = self.settings.service.http_host
        port = self.settings.service.http_port
        site = web.TCPSite(self._http_runner, host, port)
        await site.start()

        logger.info(f"HTTP server started on {host}:{port}")

    async def _health_handler(self, request: web.Request) -> web.Response:
        """Handle health check requests"""
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
        state = self.gate.state

        return web.json_response(
            {
                "status": "healthy" if state == ReadinessState.READY else "unhealthy",
                "service": "config",
                "readiness": state.value,
                "credentials_rejected": self.gate.credentials_rejected,
                "record_count": self.store.size,
                "uptime": int(uptime),
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "refresh": self.scheduler.get_stats(),
            },
            status=200 if state == ReadinessState.READY else 503,
        )

    async def _config_handler(self, request: web.Request) -> web.Response:
        """Handle agent config lookups"""
        service_name = request.query.get("service.name")
        if not service_name:
            return web.json_response({"error": "service.name is required"}, status=400)

        if_none_match = (
            request.headers.get("If-None-Match") or request.query.get("ifnonematch") or ""
        ).strip()
        # Weak validators compare equal to strong ones for a cache hit
        if_none_match = if_none_match.removeprefix("W/").strip('"')
        query = Query(
            service_name=service_name,
            service_environment=request.query.get("service.environment", ""),
            etag=if_none_match,
        )

        try:
            result = self.dispatcher.fetch(query)
        except NotReadyError as e:
            return web.json_response({"error": e.message}, status=503)
        except ConfigInvalidError as e:
            return web.json_response({"error": e.message}, status=403)

        headers = {"ETag": f'"{result.etag}"'} if result.etag else {}
        if result.etag and result.etag == if_none_match:
            return web.Response(status=304, headers=headers)

        return web.json_response(result.to_dict(), headers=headers)


async def main() -> None:
    """Main entry point"""
    settings = load_settings()
    set_log_level(settings.service.log_level)
    service = ConfigService(settings)

    try:
        await service.start()
    finally:
        await service.stop()


def run() -> None:
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
