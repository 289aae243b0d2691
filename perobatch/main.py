"""Command-line entry point.

This is the only place that turns errors into process exit codes.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import httpx

from perobatch import __version__
from perobatch.clients.pero_client import PeroClient
from perobatch.core.exceptions import BatchError, ConfigError, InvalidDirectoryError
from perobatch.core.logging_config import add_run_log, configure_logging, remove_run_log
from perobatch.core.settings import Settings, find_config_file, load_settings, write_default_config
from perobatch.errors.codes import exit_code_for
from perobatch.orchestrator import BatchRunner
from perobatch.processors.admin import cancel_request, format_engine_table, list_engines
from perobatch.utils.cancellation import CancellationToken, install_signal_handlers

logger = logging.getLogger(__name__)

EXIT_OK = 0


class CliParser(argparse.ArgumentParser):
    """Argument errors exit with the USAGE code instead of argparse's 2."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(exit_code_for("USAGE"), f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = CliParser(
        prog="pero-batch",
        description="OCR every image in a directory with the PERO OCR service, in place.",
    )
    parser.add_argument("-d", "--dir", help="dir to ocr in-place")
    parser.add_argument("-e", "--engine", type=int, help="engine id for use in ocr process (default from config)")
    parser.add_argument("-c", "--cancel", metavar="REQUEST_ID", help="cancel request with given id")
    parser.add_argument(
        "--pull-only",
        metavar="REQUEST_ID",
        help="only download alto + txt for given request id",
    )
    parser.add_argument("--engines", action="store_true", help="ask ocr server for available engines information")
    parser.add_argument("--config", type=Path, help="config file (default: .ocrtools.yml in cwd or home)")
    parser.add_argument("--max-polls", type=int, help="give up after this many status checks")
    parser.add_argument("--poll-interval", type=float, help="seconds between status checks")
    parser.add_argument("--log-format", choices=("text", "json"), help="console and run log format")
    parser.add_argument("--version", action="store_true", help="get util version")
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Settings overrides taken from command-line flags."""
    overrides: dict[str, Any] = {}
    batch: dict[str, Any] = {}
    if args.max_polls is not None:
        batch["max_polls"] = args.max_polls
    if args.poll_interval is not None:
        batch["poll_interval_seconds"] = args.poll_interval
    if batch:
        overrides["batch"] = batch
    if args.log_format is not None:
        overrides["log_format"] = args.log_format
    return overrides


def resolve_settings(
    args: argparse.Namespace,
    cwd: Optional[Path] = None,
    home: Optional[Path] = None,
) -> Optional[Settings]:
    """Load settings; returns None after writing a fresh default config."""
    if args.config is not None:
        if not args.config.is_file():
            raise ConfigError(f"config file {args.config} does not exist", str(args.config))
        path = args.config
    else:
        path = find_config_file(cwd=cwd, home=home)
        if path is None:
            created = write_default_config(home=home)
            print(f"Created default config, please set it up in: {created}")
            return None
    return load_settings(path, cli_overrides(args))


def _log_fatal(error: BatchError) -> None:
    logger.error(
        "Error: %s (exit code %d)",
        error.message,
        error.exit_code,
        extra={
            "error_code": error.error_code,
            "request_id": error.details.get("request_id"),
            "error": error.to_dict(),
        },
    )


def _finish(has_failures: bool) -> int:
    return exit_code_for("COMPLETED_WITH_FAILURES") if has_failures else EXIT_OK


def execute(
    args: argparse.Namespace,
    settings: Settings,
    transport: Optional[httpx.BaseTransport] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> int:
    """Run the selected mode and return the process exit code."""
    json_logs = settings.log_format == "json"
    configure_logging(settings.log_level, json_format=json_logs)
    engine_id = args.engine if args.engine is not None else settings.pero.default_engine

    with PeroClient(
        settings.pero,
        timeout=settings.batch.request_timeout_seconds,
        status_timeout=settings.batch.status_timeout_seconds,
        transport=transport,
    ) as client:
        if args.cancel:
            cancel_request(client, args.cancel)
            return EXIT_OK
        if args.engines:
            print(format_engine_table(list_engines(client)))
            return EXIT_OK

        directory = Path(args.dir)
        if not directory.is_dir():
            raise InvalidDirectoryError(str(directory))

        run_log = add_run_log(directory, settings.batch.log_file_name, json_format=json_logs)
        try:
            runner = BatchRunner(client, settings.batch, engine_id, cancel_token=cancel_token)
            if args.pull_only:
                report = runner.download_only(directory, args.pull_only)
                return _finish(bool(report.missing))
            result = runner.run(directory)
            return _finish(result.has_failures)
        except BatchError as e:
            # logged here so it also reaches the run log
            _log_fatal(e)
            return e.exit_code
        finally:
            remove_run_log(run_log)


def main(
    argv: Optional[Sequence[str]] = None,
    transport: Optional[httpx.BaseTransport] = None,
    cancel_token: Optional[CancellationToken] = None,
    cwd: Optional[Path] = None,
    home: Optional[Path] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return EXIT_OK
    if not (args.cancel or args.engines or args.dir):
        parser.error("-d/--dir is mandatory")

    configure_logging()
    try:
        settings = resolve_settings(args, cwd=cwd, home=home)
        if settings is None:
            return EXIT_OK
        return execute(args, settings, transport=transport, cancel_token=cancel_token)
    except BatchError as e:
        _log_fatal(e)
        return e.exit_code
    except KeyboardInterrupt:
        logger.error("interrupted", extra={"error_code": "INTERRUPTED"})
        return exit_code_for("INTERRUPTED")


def cli() -> None:
    token = CancellationToken()
    install_signal_handlers(token)
    sys.exit(main(cancel_token=token))


if __name__ == "__main__":
    cli()
