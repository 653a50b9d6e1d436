"""
Page Fetcher

Retrieves one page of the flight listing. The filter (takeoff locations) and
sort order are fixed for the fetcher's lifetime so that consecutive offsets
walk one stable ordering of the dataset.

Query shape:
    fkto[]=9415&fkto[]=9453...&l-fkto[]=Brauneck%20(DE)...
    &navpars={"start":0,"limit":500,"sort":[{"field":"FlightDate","dir":-1},...]}
"""

import logging
from typing import Any, Mapping, Sequence

import httpx
import orjson
from pydantic import ValidationError

from apps.harvester.client import AuthContext, parse_envelope
from utils.errors import FetchError, ParseError
from utils.schemas import FlightRecord, PageResult

logger = logging.getLogger(__name__)

ASCENDING = 1
DESCENDING = -1

# Newest first, then best score; two keys keep ties on a date in a fixed order
DEFAULT_SORT: tuple[tuple[str, int], ...] = (
    ("FlightDate", DESCENDING),
    ("BestTaskPoints", DESCENDING),
)


class PageFetcher:
    """Fetches listing pages for a fixed filter, sort order and page size."""

    def __init__(
        self,
        listing_url: str,
        locations: Mapping[str, str],
        page_size: int,
        sort: Sequence[tuple[str, int]] = DEFAULT_SORT,
    ) -> None:
        """
        Args:
            listing_url: Absolute URL of the listing endpoint
            locations: Human-readable label -> takeoff location id
            page_size: Records requested per page
            sort: Ordered (field, direction) pairs, direction 1 or -1
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        self.listing_url = listing_url
        self.locations = dict(locations)
        self.page_size = page_size
        self.sort = tuple(sort)

    def navigation(self, offset: int) -> dict[str, Any]:
        return {
            "start": offset,
            "limit": self.page_size,
            "sort": [{"field": field, "dir": direction} for field, direction in self.sort],
        }

    def build_params(self, offset: int) -> list[tuple[str, str]]:
        """Query parameters for the page starting at offset."""
        params = [("fkto[]", location_id) for location_id in self.locations.values()]
        params += [("l-fkto[]", label) for label in self.locations.keys()]
        params.append(("navpars", orjson.dumps(self.navigation(offset)).decode("utf-8")))
        return params

    async def fetch_page(self, offset: int, auth: AuthContext) -> PageResult:
        """
        Fetch and decode the page starting at offset.

        Args:
            offset: Zero-based index of the first record
            auth: Authenticated session

        Returns:
            PageResult with the records and the server's total count

        Raises:
            FetchError: On transport failure, HTTP error status or success=false
            ParseError: If the envelope, total count or a record cannot be decoded
        """
        logger.debug("Requesting page", extra={"offset": offset, "limit": self.page_size})

        try:
            response = await auth.client.request(
                "GET",
                self.listing_url,
                params=self.build_params(offset),
                content=auth.credentials.to_json(),
                headers=auth.headers,
            )
        except httpx.HTTPError as e:
            raise FetchError(f"Listing request at offset {offset} failed: {e}", details={"offset": offset}) from e

        if response.is_error:
            raise FetchError(
                f"Listing request at offset {offset} returned HTTP {response.status_code}",
                details={"offset": offset, "status": response.status_code},
            )

        envelope = parse_envelope(response)
        if not envelope.success:
            raise FetchError(
                f"Listing request at offset {offset} was rejected: {envelope.message}",
                details={"offset": offset},
            )

        try:
            total_count = int(envelope.meta["totalCount"])
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Listing at offset {offset} has no usable totalCount", details={"offset": offset}) from e
        if total_count < 0:
            raise ParseError(
                f"Listing at offset {offset} has a negative totalCount: {total_count}",
                details={"offset": offset},
            )

        try:
            records = [FlightRecord.model_validate(item) for item in envelope.data or []]
        except ValidationError as e:
            raise ParseError(
                f"Listing at offset {offset} contains an invalid record: {str(e).splitlines()[0]}",
                details={"offset": offset},
            ) from e

        return PageResult(
            offset=offset,
            total_count=total_count,
            success=envelope.success,
            message=envelope.message,
            records=records,
        )
