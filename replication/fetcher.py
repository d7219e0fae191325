"""
Paginated enumeration of remote collections.

Walks ``GET {path}?page=&size=`` from page 0 to ``totalPages - 1`` one
request at a time, pausing ``request_delay`` seconds between requests to
stay under the remote rate limit.
"""

import asyncio
import math
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional
from pydantic import ValidationError
from core.config import settings
from core.exceptions import PaginationError, TransientNetworkError
from replication.client import RemoteAPIClient
from schemas.remote import PageEnvelope
import logging

logger = logging.getLogger(__name__)


class PaginatedFetcher:
    """
    Yield the records of a paginated collection one page at a time.

    Page 0 fixes ``totalElements`` and ``totalPages`` for the whole walk; a
    later page that reports different totals means the collection changed
    underneath us and the walk is aborted with PaginationError.

    A later page that still fails after every retry is logged and skipped
    (counted in ``failed_pages``). Failures on page 0, throttling and
    authentication errors propagate.
    """

    def __init__(
        self,
        client: RemoteAPIClient,
        page_size: Optional[int] = None,
        request_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.client = client
        self.page_size = page_size or settings.PAGE_SIZE
        self.request_delay = settings.REQUEST_DELAY if request_delay is None else request_delay
        self._sleep = sleep

        self.requests_made = 0
        self.failed_pages: List[int] = []
        self.total_elements: Optional[int] = None

    async def iter_pages(
        self,
        path: str,
        page_size: Optional[int] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Async generator of record batches, one per page.

        Raises:
            PaginationError: Page metadata missing or inconsistent
            RateLimitedError: Throttling outlasted the retry ceiling
            AuthError: Credentials rejected
        """
        size = page_size or self.page_size
        if size <= 0:
            raise ValueError("page_size must be positive")

        self.failed_pages = []
        self.total_elements = None

        self.requests_made += 1
        data = await self.client.get_page(path, 0, size, params)
        if data is None:
            logger.info(f"{path}: collection not found, nothing to enumerate")
            self.total_elements = 0
            return

        first = self._parse(path, 0, data)
        served_size = self._check_page_count(path, first, size)
        self.total_elements = first.total_elements

        logger.info(
            f"{path}: {first.total_elements} records across {first.total_pages} pages "
            f"(page size {served_size})"
        )

        if first.content:
            yield first.content

        for page in range(1, first.total_pages):
            await self._sleep(self.request_delay)

            self.requests_made += 1
            try:
                data = await self.client.get_page(path, page, size, params)
            except TransientNetworkError as e:
                self.failed_pages.append(page)
                logger.error(
                    f"{path}: skipping page {page} after retries: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                continue

            if data is None:
                self.failed_pages.append(page)
                logger.warning(f"{path}: page {page} not found, skipping")
                continue

            envelope = self._parse(path, page, data)
            if (envelope.total_elements, envelope.total_pages) != (
                first.total_elements, first.total_pages
            ):
                raise PaginationError(
                    "Page metadata changed during enumeration",
                    context={
                        "path": path,
                        "page": page,
                        "expected": f"{first.total_elements}/{first.total_pages}",
                        "actual": f"{envelope.total_elements}/{envelope.total_pages}"
                    }
                )

            logger.debug(f"{path}: page {page + 1}/{first.total_pages} ({len(envelope.content)} records)")
            if envelope.content:
                yield envelope.content

    @staticmethod
    def _parse(path: str, page: int, data: Any) -> PageEnvelope:
        if not isinstance(data, dict):
            raise PaginationError(
                "Page response is not an object",
                context={"path": path, "page": page, "type": type(data).__name__}
            )
        try:
            return PageEnvelope.model_validate(data)
        except ValidationError as e:
            raise PaginationError(
                "Page metadata missing or malformed",
                context={
                    "path": path,
                    "page": page,
                    "errors": "; ".join(
                        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                        for err in e.errors()
                    )
                },
                original_exception=e
            )

    @staticmethod
    def _check_page_count(path: str, envelope: PageEnvelope, size: int) -> int:
        """
        Validate page 0 totals and return the page size the remote is using.

        The remote may serve fewer records per page than requested; a full
        page 0 shorter than ``size`` is then taken as the effective size.
        """
        # An empty collection may report zero or one (empty) page
        if envelope.total_elements == 0 and envelope.total_pages <= 1:
            return size

        expected = math.ceil(envelope.total_elements / size)
        served = len(envelope.content)
        if envelope.total_pages != expected and 0 < served < size:
            capped = math.ceil(envelope.total_elements / served)
            if envelope.total_pages == capped:
                logger.info(f"{path}: remote caps page size at {served} (requested {size})")
                return served

        if envelope.total_pages != expected:
            raise PaginationError(
                "totalPages does not match totalElements for the requested page size",
                context={
                    "path": path,
                    "page": 0,
                    "size": size,
                    "expected": expected,
                    "actual": envelope.total_pages
                }
            )
        return size
