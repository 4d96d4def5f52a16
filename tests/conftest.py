"""
Pytest fixtures and configuration for the test suite.

Elasticsearch is simulated with httpx.MockTransport, so no test touches
the network.
"""

import asyncio
import logging
import sys
import time
from pathlib import Path

import httpx
import pytest

# Add project root to path so tests can import the agentconf package
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from agentconf.common.config import DEFAULT_INDEX  # noqa: E402
from agentconf.services.config.sync import PageFetcher  # noqa: E402


class CaplogBridge(logging.Handler):
    """
    Hands records to whichever caplog handler is active.

    agentconf loggers do not propagate, so the root-level caplog handler
    never sees them. pytest swaps caplog.handler between the setup, call
    and teardown phases, hence the lookup on every record.
    """

    def __init__(self, caplog):
        super().__init__(logging.NOTSET)
        self.caplog = caplog

    def emit(self, record: logging.LogRecord) -> None:
        handler = self.caplog.handler
        if record.levelno >= handler.level:
            handler.handle(record)


def agentconf_loggers() -> list[logging.Logger]:
    return [
        logger
        for name, logger in logging.root.manager.loggerDict.items()
        if name.startswith("agentconf.") and isinstance(logger, logging.Logger)
    ]


def make_source(name: str, env: str = "", etag: str | None = None, **settings: str) -> dict:
    """Build an agent config `_source` document"""
    return {
        "service": {"name": name, "environment": env},
        "agent_name": "java",
        "etag": etag or f"etag-{name}-{env}",
        "settings": settings or {"transaction_sample_rate": "0.5"},
    }


class FakeElasticsearch:
    """
    Scroll API stand-in.

    `pages` is served in order for each pass; once exhausted every further
    scroll returns an empty page. `failures` maps a request number (0-based,
    counting search/scroll requests across the whole test) to a status code
    or an exception instance.
    """

    def __init__(self, pages: list[list[dict]] | None = None):
        self.pages = pages or []
        self.failures: dict[int, int | Exception] = {}
        self.page_delay: float = 0.0
        self.clear_status: int | Exception = 200
        self.clear_delay: float = 0.0
        self.requests: list[httpx.Request] = []
        self.search_times: list[float] = []
        self.page_requests = 0
        self._page_index = 0
        self._cursor_serial = 0

    @property
    def clear_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "DELETE"]

    @property
    def search_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "DELETE" and request.url.path == "/_search/scroll":
            if self.clear_delay:
                await asyncio.sleep(self.clear_delay)
            if isinstance(self.clear_status, Exception):
                raise self.clear_status
            return httpx.Response(self.clear_status, json={"succeeded": True})

        if request.url.path == f"/{DEFAULT_INDEX}/_search":
            self._page_index = 0
            self.search_times.append(time.monotonic())
        elif request.url.path != "/_search/scroll":
            return httpx.Response(404, json={"error": "unknown path"})

        number = self.page_requests
        self.page_requests += 1

        if self.page_delay:
            await asyncio.sleep(self.page_delay)

        failure = self.failures.get(number)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return httpx.Response(failure, json={"error": {"type": "security_exception"}})

        hits = self.pages[self._page_index] if self._page_index < len(self.pages) else []
        self._page_index += 1
        self._cursor_serial += 1
        return httpx.Response(
            200,
            json={
                "_scroll_id": f"cursor-{self._cursor_serial}",
                "hits": {"hits": [{"_source": source} for source in hits]},
            },
        )


@pytest.fixture(autouse=True)
def caplog_bridge(caplog):
    """Route every agentconf logger into caplog for the duration of a test"""
    bridge = CaplogBridge(caplog)
    for logger in agentconf_loggers():
        logger.addHandler(bridge)
    yield bridge
    for logger in agentconf_loggers():
        if bridge in logger.handlers:
            logger.removeHandler(bridge)


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
async def es_client(fake_es):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(fake_es.handler),
        base_url="http://es.test:9200",
    ) as client:
        yield client


@pytest.fixture
def fetcher(es_client) -> PageFetcher:
    return PageFetcher(
        es_client,
        index=DEFAULT_INDEX,
        cursor_keepalive_s=30.0,
        timeout_s=1.0,
        page_size=2,
        clear_cursor_timeout_s=1.0,
    )
