"""Entry point for running Mintie.

This module provides the main entry point for the bot.
It handles:
- Configuration loading
- Logging setup with secret sanitization
- Adapter instantiation
- Bot lifecycle management
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from mintie._version import __version__

log = structlog.get_logger()


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from mintie.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO

    configure_logging(
        level=level,
        log_format=LogFormat(log_format.lower()),
        file_path=file_path,
        file_enabled=file_enabled,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="mintie",
        description="Mintie - answers Slack questions from your Mintlify docs",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse config and validate without starting the bot",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check and exit",
    )

    parser.add_argument(
        "--health-file",
        type=Path,
        default=None,
        help="Also write the health report as JSON to this path",
    )

    return parser.parse_args(argv)


async def run_bot(
    config_path: Path,
    dry_run: bool = False,
    health_check: bool = False,
    debug: bool = False,
    health_file: Path | None = None,
) -> int:
    """Run Mintie.

    Args:
        config_path: Path to configuration file
        dry_run: If True, only validate config without starting
        health_check: If True, run health check and exit
        debug: If True, keep debug logging regardless of the config file
        health_file: Where to write the health report, if anywhere

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    log.info("starting_mintie", version=__version__, config_path=str(config_path))

    try:
        from mintie.config.loader import load_config

        log.info("loading_configuration", path=str(config_path))
        config = load_config(config_path)
        log.info("configuration_loaded", workspaces=len(config.workspaces))

        # Reconfigure logging from config file settings
        from mintie.utils.logging import configure_logging

        configure_logging(
            level="DEBUG" if debug else config.logging.level,
            log_format=config.logging.format,
            file_path=config.logging.file.path if config.logging.file.enabled else None,
            file_enabled=config.logging.file.enabled,
        )

        if dry_run:
            log.info("dry_run_mode_config_valid")
            return 0

        if health_check:
            from mintie.utils.health import HealthChecker, write_health_file

            checker = HealthChecker(config)
            result = await checker.run_all_checks()
            if health_file is not None:
                await write_health_file(result, health_file)

            if result.healthy:
                log.info("health_check_passed", details=result.details)
                return 0
            log.error("health_check_failed", details=result.details)
            return 1

        from mintie.core.bot import create_bot

        log.info("creating_bot")
        bot = create_bot(config)

        log.info("starting_bot")
        await bot.start()

        return 0

    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1
    except KeyboardInterrupt:
        log.info("keyboard_interrupt_received")
        return 0
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1


def main() -> int:
    """Main entry point."""
    args = parse_args()

    setup_logging(debug=args.debug, log_format=args.format)

    try:
        return asyncio.run(
            run_bot(
                args.config,
                args.dry_run,
                args.health_check,
                args.debug,
                health_file=args.health_file,
            )
        )
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 0


if __name__ == "__main__":
    sys.exit(main())
