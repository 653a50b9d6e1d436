"""
Persister

Writes one file per record unit into the output directory, then copies it to
the remote store when one is configured. Local writes go through a `.part`
file and are renamed into place, so an interrupted run never leaves a
truncated file under the final name.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from utils.errors import PersistError, UploadError
from utils.storage import RemoteStore

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".json"
ARTIFACT_SUFFIX = ".igc"


class Persister:
    """Local-first persistence with an optional remote copy."""

    def __init__(self, output_dir: str | Path, remote_store: Optional[RemoteStore] = None) -> None:
        self.output_dir = Path(output_dir)
        self.remote_store = remote_store

    def ensure_output_dir(self) -> None:
        """
        Create the output directory if needed.

        Raises:
            PersistError: If the directory cannot be created
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistError(f"Failed to create directory {self.output_dir}: {e}") from e

    def _path_for(self, record_id: str, suffix: str) -> Path:
        # identifiers become file names; refuse anything that could escape the directory
        if (
            not record_id
            or Path(record_id).name != record_id
            or record_id in (".", "..")
            or not record_id.isprintable()
        ):
            raise PersistError(f"Unsafe record identifier: {record_id!r}", details={"record_id": record_id})
        return self.output_dir / f"{record_id}{suffix}"

    def metadata_path(self, record_id: str) -> Path:
        return self._path_for(record_id, METADATA_SUFFIX)

    def artifact_path(self, record_id: str) -> Path:
        return self._path_for(record_id, ARTIFACT_SUFFIX)

    async def write_local(self, path: Path, content: bytes) -> Path:
        """
        Write content to path atomically.

        Raises:
            PersistError: If the write or the rename fails
        """
        tmp_path = path.with_name(path.name + ".part")
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, path)
        except (OSError, ValueError) as e:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise PersistError(f"Failed to write {path}: {e}", details={"path": str(path)}) from e
        return path

    async def upload(self, path: Path) -> Optional[bool]:
        """
        Copy a local file to the remote store.

        Returns:
            None without a remote store, else whether the upload succeeded
        """
        if self.remote_store is None:
            return None

        try:
            remote_name = await asyncio.to_thread(self.remote_store.upload, path)
        except UploadError as e:
            logger.error(
                "Failed to upload %s to remote store: %s",
                path.name, e.message,
                extra={"backend": self.remote_store.name, "path": str(path)},
            )
            return False

        logger.debug("Uploaded %s as %s", path.name, remote_name)
        return True

    async def persist(self, path: Path, content: bytes) -> Optional[bool]:
        """
        Write locally, then upload.

        Returns:
            Upload outcome (None when no remote store is configured)

        Raises:
            PersistError: If the local write fails; no upload is attempted then
        """
        await self.write_local(path, content)
        return await self.upload(path)
