"""
SFTP Remote Store

Uploads harvested files to an SFTP server with SSH key authentication and
automatic retries. Remote directories are created as needed.
"""

import logging
import time
from pathlib import Path
from typing import Optional, Tuple

import paramiko
from paramiko import SFTPClient, SSHClient

from utils.config import Settings, settings as default_settings
from utils.errors import ConfigError, UploadError

logger = logging.getLogger(__name__)


class SFTPStore:
    """Remote store backed by an SFTP directory.

    A new SSH connection is opened per upload; uploads run in worker threads
    and paramiko clients are not shared between them.
    """

    name = "sftp"

    def __init__(self, config: Optional[Settings] = None) -> None:
        """
        Args:
            config: Settings providing SFTP_* values, defaults to global settings

        Raises:
            ConfigError: If host, username or key file is missing
        """
        self.config = config or default_settings

        if not self.config.SFTP_HOST:
            raise ConfigError("SFTP_HOST is not configured")
        if not self.config.SFTP_USERNAME:
            raise ConfigError("SFTP_USERNAME is not configured")

        self.key_path = Path(self.config.SFTP_KEY_PATH)
        if not self.key_path.exists():
            raise ConfigError(f"SSH key file not found: {self.key_path}")

        self.remote_dir = self.config.SFTP_REMOTE_BASE
        self.retries = self.config.SFTP_RETRIES

    def _load_key(self) -> paramiko.PKey:
        try:
            if self.config.SFTP_KEY_PASSPHRASE:
                return paramiko.RSAKey.from_private_key_file(
                    str(self.key_path),
                    password=self.config.SFTP_KEY_PASSPHRASE,
                )
            return paramiko.RSAKey.from_private_key_file(str(self.key_path))
        except paramiko.PasswordRequiredException as e:
            raise ConfigError("SSH key requires passphrase but SFTP_KEY_PASSPHRASE not set") from e

    def connect(self) -> Tuple[SSHClient, SFTPClient]:
        """
        Open an SSH connection and an SFTP channel on it.

        Returns:
            Tuple of (ssh_client, sftp_client)

        Raises:
            IOError: If the connection cannot be established
        """
        private_key = self._load_key()

        ssh_client = SSHClient()
        ssh_client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            ssh_client.connect(
                hostname=self.config.SFTP_HOST,
                port=self.config.SFTP_PORT,
                username=self.config.SFTP_USERNAME,
                pkey=private_key,
                timeout=self.config.SFTP_TIMEOUT,
                auth_timeout=self.config.SFTP_TIMEOUT,
            )
            return ssh_client, ssh_client.open_sftp()
        except Exception as e:
            ssh_client.close()
            raise IOError(f"Failed to establish SFTP connection: {e}") from e

    def upload(self, local_path: str | Path) -> str:
        """
        Upload a file into the remote base directory under its basename.

        Args:
            local_path: Path to local file to upload

        Returns:
            Remote path of the uploaded file

        Raises:
            UploadError: If the file is missing or upload fails after all retries
        """
        local_file = Path(local_path)
        if not local_file.is_file():
            raise UploadError(f"Local file not found: {local_path}")

        remote_path = f"{self.remote_dir.rstrip('/')}/{local_file.name}"
        last_error: Optional[Exception] = None

        for attempt in range(self.retries + 1):
            ssh_client = None
            sftp_client = None
            try:
                ssh_client, sftp_client = self.connect()
                _ensure_remote_dir(sftp_client, self.remote_dir)
                sftp_client.put(str(local_file), remote_path)

                remote_size = sftp_client.stat(remote_path).st_size
                local_size = local_file.stat().st_size
                if remote_size != local_size:
                    raise IOError(
                        f"Upload verification failed: size mismatch (local={local_size}, remote={remote_size})"
                    )

                logger.debug("Uploaded to SFTP: remote_path=%s", remote_path)
                return remote_path

            except ConfigError as e:
                raise UploadError(str(e)) from e

            except Exception as e:
                last_error = e
                if attempt < self.retries:
                    wait_time = 2 ** attempt
                    logger.warning(
                        "SFTP upload failed (attempt %d/%d), retrying in %ds: %s",
                        attempt + 1, self.retries + 1, wait_time, str(e),
                    )
                    time.sleep(wait_time)

            finally:
                if sftp_client:
                    sftp_client.close()
                if ssh_client:
                    ssh_client.close()

        raise UploadError(
            f"SFTP upload failed after {self.retries + 1} attempts: {last_error}",
            details={"remote_path": remote_path},
        ) from last_error


def _ensure_remote_dir(sftp_client: SFTPClient, remote_dir: str) -> None:
    """
    Ensure remote directory exists, creating parents recursively if needed.

    Raises:
        IOError: If directory creation fails
    """
    if not remote_dir or remote_dir == "/":
        return

    remote_dir = remote_dir.rstrip("/")

    try:
        sftp_client.stat(remote_dir)
        return
    except FileNotFoundError:
        pass

    parent_dir = str(Path(remote_dir).parent)
    if parent_dir != "/" and parent_dir != remote_dir:
        _ensure_remote_dir(sftp_client, parent_dir)

    try:
        sftp_client.mkdir(remote_dir)
        logger.debug("Created remote directory: %s", remote_dir)
    except IOError as e:
        # another upload may have created it concurrently
        try:
            sftp_client.stat(remote_dir)
        except FileNotFoundError:
            raise IOError(f"Failed to create remote directory {remote_dir}: {e}") from e
