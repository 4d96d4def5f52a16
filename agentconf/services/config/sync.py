"""
Configuration Sync

Pulls the complete agent configuration corpus from Elasticsearch using
the scroll API, one page at a time.

One pass:
- First page: search request against the config index, asking for a
  scroll cursor that stays alive for one refresh interval
- Next pages: scroll continuation with the previous cursor
- Stops at the first page without hits
- Clears the cursor afterwards (best effort), success or failure
"""

import asyncio
import time
from dataclasses import dataclass, field

import httpx

from agentconf.common.config import ElasticsearchSettings
from agentconf.common.exceptions import RefreshError
from agentconf.common.logging_setup import get_service_logger

from .models import ConfigRecord

logger = get_service_logger("config.sync")

# Elasticsearch returns 401 on unauthorized requests and 403 on insufficient permission
PERMANENT_STATUS_CODES = frozenset({401, 403})


def is_permanent_status(status_code: int) -> bool:
    """True when retrying a request that got this status cannot succeed"""
    return status_code in PERMANENT_STATUS_CODES


def build_client(settings: ElasticsearchSettings) -> httpx.AsyncClient:
    """Create the HTTP client used for every upstream request"""
    headers = {"Content-Type": "application/json"}
    auth = None
    if settings.api_key:
        headers["Authorization"] = f"ApiKey {settings.api_key}"
    elif settings.username:
        auth = httpx.BasicAuth(settings.username, settings.password or "")

    return httpx.AsyncClient(
        base_url=settings.url,
        headers=headers,
        auth=auth,
        verify=settings.verify_tls,
        timeout=30.0,
    )


@dataclass
class _Pass:
    """Progress of one pagination pass, visible after a timeout"""
    cursor: str = ""
    pages: int = 0
    records: list[ConfigRecord] = field(default_factory=list)


class PageFetcher:
    """
    Fetches every agent configuration document in one pass.

    The client is owned by the caller; PageFetcher never closes it.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        index: str,
        cursor_keepalive_s: float,
        timeout_s: float = 5.0,
        page_size: int = 100,
        clear_cursor_timeout_s: float = 5.0,
    ):
        self.client = client
        self.index = index
        self.cursor_keepalive_s = cursor_keepalive_s
        self.timeout_s = timeout_s
        self.page_size = page_size
        self.clear_cursor_timeout_s = clear_cursor_timeout_s

    @property
    def _keepalive(self) -> str:
        return f"{max(1, int(self.cursor_keepalive_s * 1000))}ms"

    async def fetch(self, size_hint: int = 0) -> list[ConfigRecord]:
        """
        Run one full pagination pass.

        Args:
            size_hint: Record count of the previous snapshot (logging only)

        Returns:
            All records, in page arrival order

        Raises:
            RefreshError: recoverable=False for 401/403, True otherwise
        """
        progress = _Pass()
        start = time.monotonic()
        deadline = start + self.timeout_s
        cancelled = False

        try:
            await asyncio.wait_for(self._paginate(progress), timeout=self.timeout_s)
        except asyncio.CancelledError:
            cancelled = True
            if progress.cursor:
                logger.warning("Refresh cancelled, leaving scroll cursor to expire")
            raise
        except asyncio.TimeoutError as e:
            raise RefreshError(
                f"refresh did not finish within {self.timeout_s}s "
                f"({progress.pages} pages fetched)"
            ) from e
        finally:
            if not cancelled:
                await self._clear_cursor(progress.cursor, deadline)

        logger.debug(
            f"Fetched {len(progress.records)} records in {progress.pages} pages "
            f"(previously {size_hint})",
            extra={
                "record_count": len(progress.records),
                "pages": progress.pages,
                "duration_s": round(time.monotonic() - start, 3),
            },
        )
        return progress.records

    async def _paginate(self, progress: _Pass) -> None:
        while True:
            cursor, records = await self._fetch_page(progress.cursor)
            progress.pages += 1
            progress.records.extend(records)
            if cursor:
                progress.cursor = cursor
            if not records:
                return

    async def _fetch_page(self, cursor: str) -> tuple[str, list[ConfigRecord]]:
        """Fetch a single page, returning (next cursor, records)"""
        try:
            if not cursor:
                response = await self.client.post(
                    f"/{self.index}/_search",
                    params={"scroll": self._keepalive},
                    json={"size": self.page_size},
                )
            else:
                response = await self.client.post(
                    "/_search/scroll",
                    json={"scroll": self._keepalive, "scroll_id": cursor},
                )
        except httpx.HTTPError as e:
            raise RefreshError(f"request to elasticsearch failed: {e!r}") from e

        if response.status_code >= 400:
            logger.debug(
                f"Refresh cache elasticsearch returned status {response.status_code}: "
                f"{response.text}"
            )
            raise RefreshError(
                f"elasticsearch returned status {response.status_code}",
                status_code=response.status_code,
                recoverable=not is_permanent_status(response.status_code),
            )

        try:
            body = response.json()
            hits = body["hits"]["hits"]
            records = [ConfigRecord.from_source(hit.get("_source") or {}) for hit in hits]
            next_cursor = body.get("_scroll_id") or ""
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RefreshError(f"malformed elasticsearch response: {e!r}") from e

        return next_cursor, records

    async def _clear_cursor(self, cursor: str, deadline: float) -> None:
        """
        Release the scroll cursor; failures are only logged.

        Runs inside the pass deadline: whatever time pagination left over,
        capped at clear_cursor_timeout_s.
        """
        if not cursor:
            logger.debug("No scroll cursor to clear")
            return

        budget = min(self.clear_cursor_timeout_s, deadline - time.monotonic())
        if budget <= 0:
            logger.warning("Refresh deadline exhausted, leaving scroll cursor to expire")
            return

        try:
            response = await asyncio.wait_for(
                self.client.request(
                    "DELETE",
                    "/_search/scroll",
                    json={"scroll_id": [cursor]},
                    timeout=budget,
                ),
                timeout=budget,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Failed to clear scroll: no response within {budget:.3f}s")
            return
        except httpx.HTTPError as e:
            logger.warning(f"Failed to clear scroll: {e!r}")
            return

        if response.is_error:
            logger.warning(f"Clear scroll request returned error: {response.status_code}")
