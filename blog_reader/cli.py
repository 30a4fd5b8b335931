"""Command-line interface for the blog reader."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pprint
from pathlib import Path
from typing import List, Optional

from .checker import check_and_save
from .config import default_config_path, parse_app_config
from .errors import StateIOError
from .renderers import build_report_text
from .state import load_state, open_state_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="br",
        description="Track blogs and web pages for new content from the terminal.",
    )
    parser.add_argument(
        "--config",
        default=default_config_path(),
        help="Path to the configuration XML file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    parser.add_argument(
        "--state",
        metavar="PATH",
        default=None,
        help="State file to use instead of the configured one (JSON store only).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check, print the new items and exit.",
    )
    return parser


def configure_logging(
    level_name: str, log_file: Optional[str] = None, console: bool = True
) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    elif not console:
        root_logger.addHandler(logging.NullHandler())


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config)

        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file, console=args.once)

        if args.state:
            app_config.state_file = str(Path(args.state).expanduser())
            if app_config.database.enabled and app_config.database.connection_string:
                logger.warning(
                    "--state %s is ignored because the database state store "
                    "is enabled.",
                    args.state,
                )

        config_dict = dataclasses.asdict(app_config)
        if config_dict["database"].get("connection_string"):
            config_dict["database"]["connection_string"] = "***MASKED***"
        logger.info("Active Configuration:\n%s", pprint.pformat(config_dict))

        store = open_state_store(app_config)
        source_state = load_state(store)
        options = {
            "concurrency": app_config.concurrency,
            "timeout": app_config.timeout,
            "max_seen_ids": app_config.max_seen_ids,
        }

        if args.once:
            if not app_config.sources:
                raise RuntimeError("No sources found in the configuration.")
            report, save_error = check_and_save(
                store, app_config.sources, source_state, **options
            )
            print(build_report_text(report, str(save_error) if save_error else None))
            return 1 if save_error else 0

        from .app import Controller
        from .tui import run_tui

        run_tui(Controller(app_config.sources, store, source_state, **options))
    except ValueError as exc:
        parser.error(str(exc))
    except (RuntimeError, FileNotFoundError, StateIOError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    return 0
