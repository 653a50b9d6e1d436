"""
Event Publisher for Harvester Service

Publishes a run completion event to Redis Pub/Sub after a successful harvest.

Usage:
    from apps.harvester.publisher import publish_run_event

    await publish_run_event(summary, "/data/flights")
"""

import logging
from typing import Optional

from utils.config import Settings, settings as default_settings
from utils.mq import RedisPublisher
from utils.schemas import RunEvent, RunSummary

logger = logging.getLogger(__name__)


async def publish_run_event(
    summary: RunSummary,
    output_dir: str,
    config: Optional[Settings] = None,
    publisher: Optional[RedisPublisher] = None,
) -> bool:
    """
    Publish the run summary to the runs channel.

    Publishing is best effort: a harvest that already wrote its files is not
    failed because Redis is unreachable.

    Args:
        summary: Completed run summary
        output_dir: Directory the run wrote to
        config: Settings, defaults to the global settings
        publisher: Publisher override, built from config when omitted

    Returns:
        True if the event was published
    """
    config = config or default_settings

    if publisher is None:
        if not config.REDIS_URL:
            logger.debug("REDIS_URL not set, skipping run event")
            return False
        publisher = RedisPublisher(config.REDIS_URL, config.REDIS_MAX_CONNECTIONS)

    event = RunEvent(
        output_dir=output_dir,
        persisted=summary.records_persisted,
        failed=summary.artifact_failures,
    )

    try:
        await publisher.publish(config.REDIS_CHANNEL_RUNS, event.model_dump(mode="json"))
        logger.info(
            "Published run event",
            extra={"channel": config.REDIS_CHANNEL_RUNS, "persisted": event.persisted},
        )
        return True

    except Exception as e:
        logger.error(
            "Failed to publish run event",
            extra={"channel": config.REDIS_CHANNEL_RUNS, "error": str(e)},
        )
        return False

    finally:
        await publisher.close()
