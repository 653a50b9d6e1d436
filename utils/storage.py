"""
Remote Store Selection

Chooses the remote store harvested files are copied to after the local write.
The remote copy is optional: a missing or broken configuration degrades to
local-only persistence instead of failing the run.

Usage:
    from utils.storage import build_remote_store

    store = build_remote_store(settings)
    if store is not None:
        store.upload("data/123.igc")
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

from google.cloud import storage

from utils.config import Settings
from utils.errors import ConfigError, UploadError
from utils.sftp import SFTPStore

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Anything that can copy a local file to a remote location."""

    name: str

    def upload(self, local_path: str | Path) -> str:
        """Upload a file under its basename and return the remote name."""
        ...


class GCSStore:
    """Google Cloud Storage bucket; objects are named by local basename."""

    name = "gcs"

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None) -> None:
        if not bucket_name:
            raise ConfigError("BUCKET_NAME is not configured")
        self.bucket_name = bucket_name
        self.client = client or storage.Client()
        self.bucket = self.client.bucket(bucket_name)

    def upload(self, local_path: str | Path) -> str:
        local_file = Path(local_path)
        try:
            blob = self.bucket.blob(local_file.name)
            blob.upload_from_filename(str(local_file))
        except Exception as e:
            raise UploadError(
                f"Failed to upload {local_file.name} to gs://{self.bucket_name}: {e}",
                details={"bucket": self.bucket_name, "object": local_file.name},
            ) from e

        logger.debug("Uploaded %s to gs://%s", local_file.name, self.bucket_name)
        return f"gs://{self.bucket_name}/{local_file.name}"


def build_remote_store(config: Settings) -> Optional[RemoteStore]:
    """
    Build the configured remote store.

    Args:
        config: Settings with REMOTE_BACKEND and backend-specific fields

    Returns:
        A RemoteStore, or None when the backend is disabled or unusable
    """
    backend = config.REMOTE_BACKEND.lower().strip()

    if backend in ("", "none", "local"):
        logger.info("Remote store disabled, persisting locally only")
        return None

    try:
        if backend == "gcs":
            return GCSStore(config.BUCKET_NAME)
        if backend == "sftp":
            return SFTPStore(config)
    except Exception as e:
        # covers missing credentials from google.auth as well as ConfigError
        logger.warning(
            "Remote store unavailable, persisting locally only",
            extra={"backend": backend, "error": str(e)},
        )
        return None

    logger.warning("Unknown REMOTE_BACKEND %r, persisting locally only", backend)
    return None
