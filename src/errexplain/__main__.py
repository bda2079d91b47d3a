"""Command line entry point for ErrExplain.

Every pipeline operation is exposed as a sub-command. Results are printed to
stdout as JSON; logs go to stderr.

Exit codes:
    0  success
    1  upstream failure or unexpected error
    2  invalid input or configuration
    3  daily quota exceeded
    4  not found
    5  not the owner of the record
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import structlog

from errexplain._version import __version__
from errexplain.utils.async_helpers import (
    ErrExplainError,
    NotFound,
    QuotaExceeded,
    Unauthorized,
    ValidationError,
)

log = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2
EXIT_QUOTA = 3
EXIT_NOT_FOUND = 4
EXIT_UNAUTHORIZED = 5


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
    """
    from errexplain.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.WARNING
    configure_logging(level=level, log_format=LogFormat(log_format.lower()))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="errexplain",
        description="ErrExplain - structured explanations for programming errors",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze an error message")
    analyze.add_argument("--client-id", required=True)
    analyze.add_argument("--language", required=True)
    analyze.add_argument(
        "--message",
        help="Error text; read from --file or stdin when omitted",
    )
    analyze.add_argument("--file", type=Path, help="Read the error text from a file")
    analyze.add_argument("--private", action="store_true", help="Keep out of history and sharing")

    rate = sub.add_parser("rate-status", help="Show today's quota usage")
    rate.add_argument("--client-id", required=True)

    history = sub.add_parser("history", help="List past analyses with statistics")
    history.add_argument("--client-id", required=True)

    delete = sub.add_parser("delete", help="Delete an analysis")
    delete.add_argument("--id", required=True)
    delete.add_argument("--client-id", required=True)

    share = sub.add_parser("share", help="Share an analysis and print its link")
    share.add_argument("--id", required=True)
    share.add_argument("--client-id", required=True)

    shared = sub.add_parser("shared", help="Show a shared analysis")
    shared.add_argument("--share-id", required=True)

    vote = sub.add_parser("vote", help="Vote on a solution of a shared analysis")
    vote.add_argument("--share-id", required=True)
    vote.add_argument("--solution-index", type=int, required=True)
    vote.add_argument("--fingerprint", required=True)
    vote.add_argument("--vote-type", choices=["helpful", "not_helpful"], required=True)

    classify = sub.add_parser("classify", help="Guess the language of an error (no config needed)")
    classify.add_argument("--message", help="Error text; read from --file or stdin when omitted")
    classify.add_argument("--file", type=Path, help="Read the error text from a file")
    classify.add_argument("--declared", help="Declared language to check for a mismatch")

    sub.add_parser("health", help="Run health checks")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def emit(payload: dict[str, Any]) -> None:
    """Write one JSON document to stdout."""
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    sys.stdout.flush()


def _read_text(args: argparse.Namespace) -> str:
    if args.message is not None:
        return str(args.message)
    if args.file is not None:
        return Path(args.file).read_text(encoding="utf-8")
    return sys.stdin.read()


def _error_payload(error: ErrExplainError) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "error": str(error),
        "type": type(error).__name__,
    }
    if isinstance(error, QuotaExceeded):
        payload.update(
            limit=error.limit,
            used=error.used,
            resetsAt=error.resets_at.isoformat(),
        )
    return payload


def _exit_code(error: ErrExplainError) -> int:
    if isinstance(error, ValidationError):
        return EXIT_INVALID
    if isinstance(error, QuotaExceeded):
        return EXIT_QUOTA
    if isinstance(error, NotFound):
        return EXIT_NOT_FOUND
    if isinstance(error, Unauthorized):
        return EXIT_UNAUTHORIZED
    return EXIT_FAILURE


def run_classify(args: argparse.Namespace) -> int:
    from errexplain.core.language_classifier import LanguageClassifier

    classifier = LanguageClassifier()
    text = _read_text(args)
    scores = {label: score for label, score in classifier.scores(text).items() if score}
    data: dict[str, Any] = {"language": classifier.classify(text), "scores": scores}
    if args.declared:
        data["warning"] = classifier.check_language_mismatch(text, args.declared)
    emit({"success": True, "data": data})
    return EXIT_OK


async def run_command(args: argparse.Namespace) -> int:
    """Load configuration, run one pipeline operation and print the result.

    Returns:
        Exit code (see module docstring)
    """
    from errexplain.config.loader import load_config
    from errexplain.core.pipeline import create_pipeline
    from errexplain.utils.logging import configure_logging

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(args.config), error=str(e))
        emit({"success": False, "error": str(e), "type": "ConfigurationError"})
        return EXIT_INVALID
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        emit({"success": False, "error": str(e), "type": "ConfigurationError"})
        return EXIT_INVALID

    if not args.debug:
        configure_logging(
            level=config.logging.level,
            log_format=config.logging.format,
            file_path=config.logging.file.path if config.logging.file.enabled else None,
            file_enabled=config.logging.file.enabled,
        )

    try:
        pipeline = create_pipeline(config)
    except ErrExplainError as e:
        emit(_error_payload(e))
        return _exit_code(e)

    try:
        if args.command == "health":
            from errexplain.utils.health import HealthChecker

            report = await HealthChecker(config, pipeline.store).run_all_checks()
            emit({"success": report.healthy, "data": report.to_dict()})
            return EXIT_OK if report.healthy else EXIT_FAILURE

        data = await _dispatch(pipeline, args)
        emit({"success": True, "data": data})
        return EXIT_OK
    except ErrExplainError as e:
        emit(_error_payload(e))
        return _exit_code(e)
    finally:
        await pipeline.close()


async def _dispatch(pipeline: Any, args: argparse.Namespace) -> Any:
    command = args.command

    if command == "analyze":
        result = await pipeline.analyze(
            _read_text(args),
            args.language,
            args.client_id,
            is_private=args.private,
        )
        return result.to_dict()
    if command == "rate-status":
        return (await pipeline.rate_status(args.client_id)).to_dict()
    if command == "history":
        return (await pipeline.history(args.client_id)).to_dict()
    if command == "delete":
        await pipeline.delete_submission(args.id, args.client_id)
        return {"message": "Error deleted successfully"}
    if command == "share":
        return (await pipeline.share_submission(args.id, args.client_id)).to_dict()
    if command == "shared":
        return (await pipeline.shared_submission(args.share_id)).to_dict()
    if command == "vote":
        tally = await pipeline.vote(
            args.share_id,
            args.solution_index,
            args.fingerprint,
            args.vote_type,
        )
        return tally.to_dict()

    raise ValueError(f"Unknown command: {command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(debug=args.debug, log_format=args.format)

    if args.command == "classify":
        return run_classify(args)

    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        log.info("interrupted")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
