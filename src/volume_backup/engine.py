from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .archiver import VolumeArchiver, VolumeLister
from .config import RetentionPolicy
from .report import CycleEvent, CycleReport, error, info, warning
from .retention import prune

LOG = logging.getLogger(__name__)

Pruner = Callable[[Path, RetentionPolicy], List[CycleEvent]]
Clock = Callable[[], datetime]


class CycleRunner:
    """Runs one backup cycle: discover, validate, archive, prune.

    Every (volume, destination) pair and every destination prune is its own
    failure boundary returning events; only a discovery failure ends the
    cycle early.
    """

    def __init__(
        self,
        archiver: VolumeArchiver,
        pruner: Pruner = prune,
        clock: Clock = datetime.now,
    ) -> None:
        self._archiver = archiver
        self._pruner = pruner
        self._clock = clock

    def run(
        self,
        lister: VolumeLister,
        destinations: Sequence[Path],
        policy: RetentionPolicy,
    ) -> CycleReport:
        report = CycleReport()
        created_at = self._clock()
        try:
            volumes = lister.list_volumes()
            if not volumes:
                report.add(info("No Docker volumes found."))
                return report

            verified: List[Path] = []
            for destination in destinations:
                if Path(destination).is_dir():
                    verified.append(Path(destination))
                else:
                    report.add(warning(f"Backup path {destination} does not exist."))

            if not verified:
                report.add(info("No backup paths were verified."))
                return report

            LOG.info("Backing up %d volume(s) to %d destination(s)", len(volumes), len(verified))
            for volume in volumes:
                for destination in verified:
                    report.add(self.backup_volume(volume, destination, created_at))

            if policy.enabled:
                for destination in destinations:
                    report.extend(self.prune_destination(Path(destination), policy))
        except Exception as exc:  # noqa: BLE001
            LOG.debug("Backup cycle aborted", exc_info=True)
            report.add(error(f"An error occurred: {exc}"))
        return report

    def backup_volume(self, volume: str, destination: Path, created_at: Optional[datetime] = None) -> CycleEvent:
        created_at = created_at or self._clock()
        try:
            archive_path = self._archiver.archive(volume, destination, created_at)
            if not archive_path.exists():
                return error(
                    f"Failed to create backup for volume {volume} at {destination}. "
                    "Check Docker and file system permissions."
                )
            if archive_path.stat().st_size == 0:
                return warning(f"Backup file created but is empty for volume {volume} at {destination}")
        except Exception as exc:  # noqa: BLE001
            LOG.debug("Backup of %s to %s failed", volume, destination, exc_info=True)
            return error(f"An error occurred backing up Docker volume {volume} to {destination}: {exc}")
        return info(f"Backup successfully created for volume {volume} at {destination}")

    def prune_destination(self, destination: Path, policy: RetentionPolicy) -> List[CycleEvent]:
        try:
            return list(self._pruner(destination, policy))
        except Exception as exc:  # noqa: BLE001
            LOG.debug("Retention pass for %s failed", destination, exc_info=True)
            return [error(f"An error occurred applying the retention policy to {destination}: {exc}")]
