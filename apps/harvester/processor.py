"""
Record Processor

Runs the two independent units of work for one flight:
- metadata: serialize the record and persist <id>.json
- artifact: download the IGC track log and persist <id>.igc

Units never raise harvester errors to the caller; each failure is logged with
the flight id and reflected in the returned PersistOutcome. Only the artifact
download is retried (bounded, exponential backoff).
"""

import asyncio
import logging
from typing import Optional

import aiofiles.os
import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from apps.harvester.client import AuthContext
from apps.harvester.persister import Persister
from utils.errors import FetchError, HarvesterError
from utils.schemas import FlightRecord, PersistOutcome

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({408, 425, 429, 500, 502, 503, 504})


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return False


class RecordProcessor:
    """Downloads and persists everything belonging to one record."""

    def __init__(
        self,
        persister: Persister,
        artifact_url: str,
        max_retries: int = 3,
        backoff_multiplier: float = 1.0,
        skip_existing: bool = False,
    ) -> None:
        """
        Args:
            persister: Local/remote writer
            artifact_url: URL template with a {flight_id} placeholder
            max_retries: Extra attempts for a transient artifact download failure
            backoff_multiplier: Exponential backoff base in seconds (0 disables waiting)
            skip_existing: Do not re-download artifacts already present locally
        """
        self.persister = persister
        self.artifact_url = artifact_url
        self.max_retries = max_retries
        self.backoff_multiplier = backoff_multiplier
        self.skip_existing = skip_existing

    def artifact_url_for(self, record_id: str) -> str:
        return self.artifact_url.format(flight_id=record_id)

    async def fetch_artifact(self, record_id: str, auth: AuthContext) -> bytes:
        """
        Download the raw artifact body for a record.

        Raises:
            FetchError: If the download still fails after the allowed retries
        """
        url = self.artifact_url_for(record_id)

        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=30),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "Retrying artifact download (attempt %d/%d): %s",
                            attempt.retry_state.attempt_number, self.max_retries + 1, record_id,
                        )
                    response = await auth.client.get(url, headers=auth.headers)
                    response.raise_for_status()
                    return response.content
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(
                f"Failed to download artifact for {record_id}: {e}",
                details={"record_id": record_id, "url": url},
            ) from e

        # unreachable: AsyncRetrying either returns or re-raises
        raise FetchError(f"Failed to download artifact for {record_id}", details={"record_id": record_id})

    async def persist_metadata(self, record: FlightRecord, outcome: PersistOutcome) -> None:
        record_id = record.record_id
        try:
            path = self.persister.metadata_path(record_id)
            outcome.metadata_uploaded = await self.persister.persist(path, record.to_json_bytes())
        except HarvesterError as e:
            outcome.error = e.message
            logger.error("Failed to save flight JSON [%s]: %s", record_id, e.message, extra={"record_id": record_id})
            return

        outcome.metadata_persisted = True
        logger.info("Saved flight JSON [%s] to: %s", record_id, path)

    async def persist_artifact(self, record_id: str, auth: AuthContext, outcome: PersistOutcome) -> None:
        try:
            path = self.persister.artifact_path(record_id)

            if self.skip_existing and await aiofiles.os.path.exists(path):
                outcome.artifact_persisted = True
                outcome.artifact_skipped = True
                logger.info("Skipped igc [%s]: already at %s", record_id, path)
                return

            content = await self.fetch_artifact(record_id, auth)
            outcome.artifact_uploaded = await self.persister.persist(path, content)
        except HarvesterError as e:
            outcome.error = e.message
            logger.error("Failed to save igc [%s]: %s", record_id, e.message, extra={"record_id": record_id})
            return

        outcome.artifact_persisted = True
        logger.info("Saved igc [%s] to: %s", record_id, path)

    async def process(
        self,
        record: FlightRecord,
        auth: AuthContext,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> PersistOutcome:
        """
        Run both units for a record concurrently.

        Args:
            record: Flight from the listing
            auth: Authenticated session
            semaphore: Shared limit on in-flight units, one slot per unit

        Returns:
            PersistOutcome for the record
        """
        semaphore = semaphore or asyncio.Semaphore(2)
        outcome = PersistOutcome(record_id=record.record_id)

        async def metadata_unit() -> None:
            async with semaphore:
                await self.persist_metadata(record, outcome)

        async def artifact_unit() -> None:
            async with semaphore:
                await self.persist_artifact(record.record_id, auth, outcome)

        await asyncio.gather(metadata_unit(), artifact_unit())
        return outcome
