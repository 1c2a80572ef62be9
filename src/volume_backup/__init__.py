"""Docker volume backup and retention service."""

from __future__ import annotations

from .config import BackupConfig, RetentionPolicy, load_config  # noqa: F401
from .engine import CycleRunner  # noqa: F401
from .report import CycleReport  # noqa: F401
from .scheduler import Scheduler  # noqa: F401
