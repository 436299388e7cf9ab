"""Application entry point for the torrentsieve watcher."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from logging.handlers import RotatingFileHandler
from typing import Mapping, Optional

from art import tprint

import settings
from adapters.feed_source import FeedFetchError, HttpFeedSource
from adapters.instance_lock import AlreadyRunningError, InstanceLock
from adapters.save_actions import SaveActions
from adapters.sqlite_storage import SQLiteLedger
from core.config import AppConfig
from core.errors import ConfigurationError
from core.processor import FeedProcessor
from core.rules_engine import FilterEngine

NAME = "TORRENTSIEVE"
FONT = "tarty-1"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _configure_logging(config: Mapping, verbose: bool = False) -> None:
    level_name = "DEBUG" if verbose else str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {}) or {}
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/torrentsieve.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _reload(processor: FeedProcessor, config_path: str, current: AppConfig) -> AppConfig:
    """Re-read the config; a broken file keeps the previous rules."""

    logger = logging.getLogger(__name__)
    try:
        config = settings.load_settings(config_path)
        processor.reload(config.filters)
    except (ConfigurationError, OSError) as exc:
        logger.error("Reload failed, keeping previous settings: %s", exc)
        return current
    return config


def _refresh(processor: FeedProcessor, config: AppConfig) -> None:
    logger = logging.getLogger(__name__)
    try:
        processor.refresh(config.feed.url)
    except FeedFetchError as exc:
        logger.error("Feed refresh failed: %s", exc)
    except ConfigurationError:
        logger.exception("Rule evaluation failed; fix the config before the next poll")


def _run(config_path: str, once: bool, verbose: bool) -> int:
    try:
        config = settings.load_settings(config_path)
    except settings.ConfigMissing as exc:
        print(f"{exc}\nCustomize {exc.path} before rerunning torrentsieve")
        return 1
    except ConfigurationError as exc:
        print(f"Invalid config {config_path}: {exc}", file=sys.stderr)
        return 2

    _configure_logging(config.logging, verbose)
    logger = logging.getLogger(__name__)
    logger.info("Starting torrentsieve")

    lock = InstanceLock(settings.LOCK_PATH)
    try:
        lock.acquire()
    except AlreadyRunningError as exc:
        logger.error("%s", exc)
        return 3

    try:
        ledger = SQLiteLedger(settings.DB_PATH)
        ledger.init_db()
        logger.info("Ledger %s holds %s accepted ids", settings.DB_PATH, len(ledger.list_accepted_ids()))

        engine = FilterEngine()
        try:
            engine.load(config.filters)
        except ConfigurationError as exc:
            logger.error("Invalid rules in %s: %s", config_path, exc)
            return 2

        source = HttpFeedSource()
        processor = FeedProcessor(
            source=source,
            saver=SaveActions(config.save, ledger),
            engine=engine,
        )

        try:
            _poll(processor, config, config_path, once, ledger)
        finally:
            source.close()
    finally:
        lock.release()
    return 0


def _poll(
    processor: FeedProcessor,
    config: AppConfig,
    config_path: str,
    once: bool,
    ledger: SQLiteLedger,
) -> None:
    logger = logging.getLogger(__name__)
    while True:
        _refresh(processor, config)
        if once or config.feed.poll <= 0:
            return
        logger.info("Sleeping for %s seconds.", config.feed.poll)
        time.sleep(config.feed.poll)
        logger.info("Reloading settings...")
        config = _reload(processor, config_path, config)
        # Save actions follow the reloaded config.
        processor.set_saver(SaveActions(config.save, ledger))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="torrentsieve")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Poll the feed and save accepted torrents")
    run_parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    subparsers.add_parser("init", help="Write a default config file")
    parser.add_argument("--config", default=settings.CONFIG_PATH, help="Path to the YAML config")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")

    args = parser.parse_args(argv)
    _print_banner()
    if args.command == "init":
        if os.path.exists(args.config):
            print(f"{args.config} already exists")
            return
        settings.write_default_config(args.config)
        print(f"Wrote new config file to {args.config}")
        return
    sys.exit(_run(args.config, getattr(args, "once", False), args.verbose))


if __name__ == "__main__":
    main()
