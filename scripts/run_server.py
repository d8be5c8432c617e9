from __future__ import annotations

import argparse
from collections.abc import Sequence

import uvicorn

from student_profiles.infrastructure.config import get_settings, load_settings_from_file
from student_profiles.infrastructure.db import create_database_engine, initialise_database
from student_profiles.infrastructure.logging import get_logger, setup_logging

logger = get_logger("run_server")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the student profile API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument("--config", help="JSON settings file applied before start-up")
    return parser.parse_args(argv)


def prepare_store() -> None:
    """Create the SQLite schema up front so the first request does not pay for it."""
    config = get_settings().store
    if config.backend != "sqlite":
        logger.info("Store backend is %s; nothing to prepare", config.backend)
        return
    initialise_database(create_database_engine(config))


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    settings = load_settings_from_file(args.config) if args.config else get_settings()
    log_config = settings.logging
    setup_logging(
        level=log_config.level,
        log_file=log_config.file_path,
        structured=log_config.structured,
        enable_console=log_config.console_enabled,
        max_bytes=log_config.max_bytes,
        backup_count=log_config.backup_count,
    )
    prepare_store()

    uvicorn.run(
        "student_profiles.web.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
