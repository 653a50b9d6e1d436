"""
Harvest Job - wires settings into one PipelineDriver run.
"""

import logging
from typing import Optional

import httpx

from apps.harvester.auth import SessionAuthenticator
from apps.harvester.client import Credentials, create_http_client
from apps.harvester.fetcher import PageFetcher
from apps.harvester.persister import Persister
from apps.harvester.pipeline import PipelineDriver
from apps.harvester.processor import RecordProcessor
from utils.config import Settings, settings as default_settings
from utils.schemas import RunSummary
from utils.storage import build_remote_store

logger = logging.getLogger(__name__)


async def run_harvest(
    config: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RunSummary:
    """
    Run one complete harvest.

    Args:
        config: Settings to use, defaults to the global settings
        transport: Optional HTTP transport override

    Returns:
        RunSummary of the run

    Raises:
        ConfigError: If credentials are missing
        PersistError: If the output directory cannot be created
        AuthError, FetchError, ParseError: On fatal pipeline errors
    """
    config = config or default_settings
    credentials = Credentials.from_settings(config)

    persister = Persister(config.OUTPUT_DIR, remote_store=build_remote_store(config))
    persister.ensure_output_dir()

    logger.info(
        "Starting harvest",
        extra={
            "output_dir": config.OUTPUT_DIR,
            "page_size": config.PAGE_SIZE,
            "max_concurrency": config.MAX_CONCURRENCY,
            "remote_store": getattr(persister.remote_store, "name", None),
        },
    )

    async with create_http_client(config, transport=transport) as client:
        driver = PipelineDriver(
            authenticator=SessionAuthenticator(
                client,
                api_base=config.XC_API_BASE,
                token_path=config.XC_TOKEN_PATH,
                login_path=config.XC_LOGIN_PATH,
            ),
            fetcher=PageFetcher(
                listing_url=config.XC_LISTING_URL,
                locations=config.TAKEOFF_LOCATIONS,
                page_size=config.PAGE_SIZE,
            ),
            processor=RecordProcessor(
                persister,
                artifact_url=config.XC_ARTIFACT_URL,
                max_retries=config.ARTIFACT_MAX_RETRIES,
                skip_existing=config.SKIP_EXISTING,
            ),
            page_delay=config.PAGE_DELAY_SECONDS,
            max_concurrency=config.MAX_CONCURRENCY,
            max_records=config.MAX_RECORDS,
        )
        return await driver.run(credentials)
