"""
Shared pytest fixtures for volume backup tests.

Provides:
- Fake volume lister / archiver standing in for the docker CLI
- Retention policy factory
- Helper for planting aged archive files in a destination
"""

import os
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from volume_backup.archiver import archive_file_name
from volume_backup.config import RetentionPolicy


NOW = datetime(2024, 6, 1, 12, 0, 0)


class FakeLister:
    """Returns a fixed list of volumes, or raises the configured error."""

    def __init__(self, volumes=(), error=None):
        self.volumes = list(volumes)
        self.error = error
        self.calls = 0

    def list_volumes(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.volumes)


class FakeArchiver:
    """
    Writes archive files like the docker archiver would.

    ``outcomes`` maps a volume name (or ``(volume, destination)`` pair) to one of
    ``"ok"``, ``"empty"``, ``"missing"`` or an exception instance to raise.
    """

    def __init__(self, outcomes=None):
        self.outcomes = outcomes or {}
        self.calls = []

    def archive(self, volume, destination, created_at):
        destination = Path(destination)
        self.calls.append((volume, destination))
        outcome = self.outcomes.get((volume, destination), self.outcomes.get(volume, "ok"))
        if isinstance(outcome, Exception):
            raise outcome

        path = destination / archive_file_name(volume, created_at)
        if outcome == "ok":
            path.write_bytes(b"archive-data")
        elif outcome == "empty":
            path.write_bytes(b"")
        return path


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_policy():
    def _make(enabled=True, max_age=timedelta(days=7), min_count=1):
        return RetentionPolicy(enabled=enabled, max_age=max_age, min_count=min_count)

    return _make


@pytest.fixture
def make_archive():
    """Create an archive file in ``destination`` whose mtime is ``age`` before ``NOW``."""

    def _make(destination, volume, age, size=16):
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        created_at = NOW - age
        path = destination / archive_file_name(volume, created_at)
        path.write_bytes(b"x" * size)
        stamp = created_at.timestamp()
        os.utime(path, (stamp, stamp))
        return path

    return _make


@pytest.fixture
def backup_dir(tmp_path):
    path = tmp_path / "backups"
    path.mkdir()
    return path


@pytest.fixture
def make_lister():
    return FakeLister


@pytest.fixture
def make_archiver():
    return FakeArchiver
