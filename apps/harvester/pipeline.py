"""
Pipeline Driver

AUTHENTICATING -> PAGING -> DONE, or FAILED on a fatal error.

Pages are strictly sequential: page N+1 is requested only after every unit of
page N has finished and the inter-page delay has elapsed. Within a page,
records are processed concurrently under one shared semaphore. The total
count seen on the first page bounds the whole run.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from apps.harvester.auth import SessionAuthenticator
from apps.harvester.client import AuthContext, Credentials
from apps.harvester.fetcher import PageFetcher
from apps.harvester.processor import RecordProcessor
from utils.errors import HarvesterError
from utils.schemas import FlightRecord, PageResult, PersistOutcome, RunSummary

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    AUTHENTICATING = "authenticating"
    PAGING = "paging"
    DONE = "done"
    FAILED = "failed"


class PipelineDriver:
    """Authenticate once, then page through the listing and fan out per record."""

    def __init__(
        self,
        authenticator: SessionAuthenticator,
        fetcher: PageFetcher,
        processor: RecordProcessor,
        page_delay: float = 5.0,
        max_concurrency: int = 16,
        max_records: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            authenticator: Token/login handshake
            fetcher: Listing page fetcher (owns page size, filter and sort)
            processor: Per-record download and persistence
            page_delay: Seconds to wait between pages
            max_concurrency: Units (metadata or artifact) allowed in flight at once
            max_records: Optional upper bound below the server's total count
            sleep: Delay coroutine, replaceable in tests
        """
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")

        self.authenticator = authenticator
        self.fetcher = fetcher
        self.processor = processor
        self.page_delay = page_delay
        self.max_concurrency = max_concurrency
        self.max_records = max_records
        self.sleep = sleep

        self.state = PipelineState.AUTHENTICATING
        self.offsets_fetched: list[int] = []

    @property
    def page_size(self) -> int:
        return self.fetcher.page_size

    async def run(self, credentials: Credentials) -> RunSummary:
        """
        Execute the whole harvest.

        Returns:
            RunSummary with the success count and failure tallies

        Raises:
            AuthError, FetchError, ParseError: Fatal; the run stops immediately
        """
        summary = RunSummary()
        start_time = time.monotonic()

        try:
            self.state = PipelineState.AUTHENTICATING
            auth = await self.authenticator.authenticate(credentials)

            self.state = PipelineState.PAGING
            await self._page_loop(auth, summary)

        except HarvesterError as e:
            self.state = PipelineState.FAILED
            summary.elapsed_seconds = time.monotonic() - start_time
            logger.error(
                "Harvest aborted: %s",
                e.message,
                extra={"error_code": e.error_code, "persisted": summary.records_persisted},
            )
            raise

        self.state = PipelineState.DONE
        summary.elapsed_seconds = time.monotonic() - start_time

        logger.info(
            "Harvest complete: persisted=%d, seen=%d, artifact_failures=%d, metadata_failures=%d, "
            "upload_failures=%d, pages=%d, elapsed=%.1fs",
            summary.records_persisted, summary.records_seen, summary.artifact_failures,
            summary.metadata_failures, summary.upload_failures, summary.pages_fetched,
            summary.elapsed_seconds,
        )
        return summary

    async def _page_loop(self, auth: AuthContext, summary: RunSummary) -> None:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        offset = 0
        bound: Optional[int] = None

        while bound is None or offset < bound:
            logger.info("Fetching flights %d to %d", offset, offset + self.page_size)
            page = await self.fetcher.fetch_page(offset, auth)
            self.offsets_fetched.append(offset)
            summary.pages_fetched += 1

            if bound is None:
                bound = self._resolve_bound(page)
                summary.total_count = page.total_count

            records = page.records[: max(bound - offset, 0)]
            for outcome in await self._process_page(records, auth, semaphore):
                summary.add(outcome)

            offset += self.page_size
            logger.info(
                "Page at %d done: %d records, %d persisted so far",
                page.offset, len(records), summary.records_persisted,
            )

            if offset < bound and self.page_delay > 0:
                logger.info("Sleeping for %.1fs, currently at %d", self.page_delay, offset)
                await self.sleep(self.page_delay)

    def _resolve_bound(self, page: PageResult) -> int:
        bound = page.total_count
        if self.max_records is not None and self.max_records < bound:
            logger.info("Capping run at %d of %d records", self.max_records, bound)
            bound = self.max_records
        logger.info("Listing reports %d records, page size %d", page.total_count, self.page_size)
        return bound

    async def _process_page(
        self,
        records: list[FlightRecord],
        auth: AuthContext,
        semaphore: asyncio.Semaphore,
    ) -> list[PersistOutcome]:
        # barrier: the page is finished only when every record's units are
        return await asyncio.gather(
            *(self.processor.process(record, auth, semaphore) for record in records)
        )
