from __future__ import annotations

import argparse
import functools
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from .archiver import ArchiverError, DockerVolumeArchiver
from .config import ENV_CONFIG_PATH, BackupConfig, ConfigurationError, load_config
from .engine import CycleRunner
from .logger import configure_logging
from .notifier import WebhookNotifier
from .scheduler import Scheduler


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Back up local Docker volumes on a fixed interval.")
    parser.add_argument(
        "--config",
        default=os.getenv(ENV_CONFIG_PATH),
        help="Optional YAML configuration file; environment variables override it.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (defaults to LOG_LEVEL or INFO).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single backup cycle, deliver its report and exit.",
    )
    parser.add_argument(
        "--list-volumes",
        action="store_true",
        help="Print the volumes that would be backed up and exit.",
    )
    return parser.parse_args(argv)


def load_configuration(path: Optional[Path]) -> BackupConfig:
    try:
        return load_config(path)
    except ConfigurationError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc


def build_scheduler(config: BackupConfig, archiver: DockerVolumeArchiver) -> Scheduler:
    runner = CycleRunner(archiver=archiver)
    cycle = functools.partial(runner.run, archiver, config.destinations, config.retention)
    notifier = WebhookNotifier(config.webhook_url)
    return Scheduler(cycle=cycle, notifier=notifier, interval=config.interval_seconds)


def list_volumes(archiver: DockerVolumeArchiver) -> int:
    try:
        volumes = archiver.list_volumes()
    except ArchiverError as exc:
        logging.error("%s", exc)
        return 1
    for volume in volumes:
        print(volume)
    return 0


def run_forever(scheduler: Scheduler) -> int:
    def _handle_signal(signum: int, _frame: Optional[object]) -> None:
        logging.info("Received signal %s; stopping scheduler", signum)
        scheduler.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    scheduler.run()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or os.getenv("LOG_LEVEL", "INFO"))

    config_path = Path(args.config).expanduser() if args.config else None
    config = load_configuration(config_path)
    if not args.log_level:
        configure_logging(config.log_level)

    archiver = DockerVolumeArchiver(docker_binary=config.docker_binary, image=config.archiver_image)
    if args.list_volumes:
        return list_volumes(archiver)

    scheduler = build_scheduler(config, archiver)
    if args.once:
        report = scheduler.run_once()
        return 1 if report.has_errors else 0

    logging.info(
        "Backing up to %s every %sms (retention %s)",
        ", ".join(str(path) for path in config.destinations),
        config.interval_ms,
        "enabled" if config.retention.enabled else "disabled",
    )
    return run_forever(scheduler)


if __name__ == "__main__":
    sys.exit(main())
