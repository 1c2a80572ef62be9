from __future__ import annotations

import logging
import re
import subprocess
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

LOG = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar"
ARCHIVE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
ARCHIVE_NAME_PATTERN = re.compile(
    r"^(?P<volume>.+)_(?P<timestamp>\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})_(?P<token>[0-9A-Za-z-]+)\.tar$"
)


class ArchiverError(Exception):
    """Raised when volumes cannot be listed or archived."""


class VolumeLister(Protocol):
    def list_volumes(self) -> List[str]:
        ...


class VolumeArchiver(Protocol):
    def archive(self, volume: str, destination: Path, created_at: datetime) -> Path:
        ...


def archive_file_name(volume: str, created_at: datetime, token: Optional[str] = None) -> str:
    token = token or str(uuid.uuid4())
    return f"{volume}_{created_at.strftime(ARCHIVE_TIMESTAMP_FORMAT)}_{token}{ARCHIVE_SUFFIX}"


class DockerVolumeArchiver:
    """Lists and archives local Docker volumes through the docker CLI.

    Each archive is produced by a throwaway container that mounts the volume
    read-only at ``/data`` and the destination at ``/backup``.
    """

    def __init__(self, docker_binary: str = "docker", image: str = "alpine", timeout: Optional[float] = None) -> None:
        self._docker = docker_binary
        self._image = image
        self._timeout = timeout

    def list_volumes(self) -> List[str]:
        output = self._run([self._docker, "volume", "ls", "-q"], action="list Docker volumes")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def archive(self, volume: str, destination: Path, created_at: datetime) -> Path:
        destination = Path(destination).resolve()
        file_name = archive_file_name(volume, created_at)
        cmd = [
            self._docker,
            "run",
            "--rm",
            "-v",
            f"{volume}:/data:ro",
            "-v",
            f"{destination}:/backup",
            self._image,
            "tar",
            "-cf",
            f"/backup/{file_name}",
            "-C",
            "/data",
            ".",
        ]
        LOG.info("Archiving volume %s to %s", volume, destination / file_name)
        self._run(cmd, action=f"archive volume {volume}")
        return destination / file_name

    def _run(self, cmd: Sequence[str], action: str) -> str:
        try:
            completed = subprocess.run(
                list(cmd),
                check=True,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise ArchiverError(f"Failed to {action}: docker binary '{self._docker}' not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise ArchiverError(f"Failed to {action}: timed out after {exc.timeout}s") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            LOG.error("docker command failed (%s): %s", exc.returncode, stderr)
            raise ArchiverError(f"Failed to {action}: {stderr or f'exit code {exc.returncode}'}") from exc
        return completed.stdout or ""
