from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

from .archiver import ARCHIVE_NAME_PATTERN
from .config import RetentionPolicy
from .report import CycleEvent, error, info

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveFile:
    path: Path
    volume: str
    created_at: datetime
    token: str
    size: int

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at


def list_archives(destination: Path) -> List[ArchiveFile]:
    """Archives in ``destination``, oldest first.

    Age comes from the file's modification time; archives are written once
    and never touched again, so it matches the moment of creation.
    """
    destination = Path(destination)
    if not destination.is_dir():
        return []

    archives: List[ArchiveFile] = []
    for child in destination.iterdir():
        match = ARCHIVE_NAME_PATTERN.match(child.name)
        if not match or not child.is_file():
            LOG.debug("Skipping non-archive entry %s", child)
            continue
        try:
            stat = child.stat()
        except FileNotFoundError:
            LOG.debug("Archive %s vanished before it could be inspected", child)
            continue
        archives.append(
            ArchiveFile(
                path=child,
                volume=match.group("volume"),
                created_at=datetime.fromtimestamp(stat.st_mtime),
                token=match.group("token"),
                size=stat.st_size,
            )
        )
    archives.sort(key=lambda archive: archive.created_at)
    return archives


def select_expired(archives: List[ArchiveFile], policy: RetentionPolicy, now: datetime) -> List[ArchiveFile]:
    # The cap counts every candidate but only expired archives are ever taken.
    # Empty archives never count towards the floor of non-empty ones.
    limit = max(0, len(archives) - policy.min_count)
    non_empty_limit = max(0, sum(1 for archive in archives if archive.size > 0) - policy.min_count)

    selected: List[ArchiveFile] = []
    for archive in archives:
        if len(selected) >= limit:
            break
        if archive.age(now) <= policy.max_age:
            continue
        if archive.size > 0:
            if non_empty_limit == 0:
                continue
            non_empty_limit -= 1
        selected.append(archive)
    return selected


def prune(destination: Path, policy: RetentionPolicy, now: Optional[datetime] = None) -> List[CycleEvent]:
    now = now or datetime.now()
    events: List[CycleEvent] = []

    for archive in select_expired(list_archives(destination), policy, now):
        try:
            archive.path.unlink()
        except PermissionError as exc:
            events.append(error(f"Permission issue deleting file {archive.path}: {exc}"))
        except OSError as exc:
            events.append(error(f"IO issue deleting file {archive.path}: {exc}"))
        except Exception as exc:  # noqa: BLE001
            events.append(
                error(f"An error occurred applying the retention policy, error deleting file {archive.path}: {exc}")
            )
        else:
            events.append(info(f"Applied Data Retention Policy - Deleted old backup: {archive.path}"))
    return events
