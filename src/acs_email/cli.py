from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Sequence

from acs_email.client import EmailClient
from acs_email.config import Settings, SettingsManager
from acs_email.errors import AcsEmailError, ConfigurationError, MessageBuildError
from acs_email.models import (
    EmailMessage,
    EmailSendStatus,
    ErrorDetail,
    attachment_from_file,
    build_message,
)
from acs_email.utils import LoggingOptions, configure_logging, get_logger
from acs_email.utils.errors import describe_exception


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acs-email",
        description="Send email through Azure Communication Services.",
    )
    parser.add_argument("--env-file", type=Path, help="Path to a settings .env file")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    parser.add_argument(
        "--no-log-file", action="store_true", help="Only log to the console"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    send = subparsers.add_parser("send", help="Send a message and wait for delivery")
    send.add_argument("--sender", help="Sender address (defaults to ACS_EMAIL_SENDER)")
    send.add_argument("--to", action="append", default=[], required=True)
    send.add_argument("--cc", action="append", default=[])
    send.add_argument("--bcc", action="append", default=[])
    send.add_argument("--reply-to", action="append", default=[])
    send.add_argument("--subject", required=True)
    send.add_argument("--text", help="Plain text body")
    send.add_argument("--html", help="HTML body")
    send.add_argument("--attach", action="append", default=[], type=Path)
    send.add_argument(
        "--disable-tracking",
        action="store_true",
        help="Disable user engagement tracking for this message",
    )
    send.add_argument(
        "--no-wait",
        action="store_true",
        help="Return after the service accepts the message",
    )
    return parser


def message_from_args(args: argparse.Namespace, settings: Settings) -> EmailMessage:
    attachments = [attachment_from_file(path) for path in args.attach]
    return build_message(
        sender=args.sender or settings.sender,
        subject=args.subject,
        to=args.to,
        cc=args.cc or None,
        bcc=args.bcc or None,
        plain_text=args.text,
        html=args.html,
        attachments=attachments or None,
        reply_to=args.reply_to or None,
        user_engagement_tracking_disabled=True if args.disable_tracking else None,
    )


def _print_status(
    operation_id: str, status: EmailSendStatus, error: ErrorDetail | None
) -> None:
    line = f"{operation_id}: {status.value}"
    if error is not None:
        line += f" ({error})"
    print(line, flush=True)


async def run_send(args: argparse.Namespace, settings: Settings) -> int:
    message = message_from_args(args, settings)
    async with EmailClient.from_settings(settings) as client:
        observer = None if args.no_wait else _print_status
        result = await client.send_email(message, observer)
        print(f"Accepted operation {result.operation_id}", flush=True)
        if args.no_wait:
            result.cancel("Caller is not waiting for completion")
            await result.wait()
            return EXIT_OK
        outcome = await result.wait()
    return EXIT_OK if outcome.succeeded else EXIT_FAILED


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_path = configure_logging(
        LoggingOptions(debug=args.debug, log_to_file=not args.no_log_file)
    )
    logger = get_logger(__name__)
    if log_path is not None:
        logger.debug("Writing log file", path=str(log_path))

    try:
        settings = SettingsManager(args.env_file).load()
        return asyncio.run(run_send(args, settings))
    except (ConfigurationError, MessageBuildError, ValueError) as exc:
        descriptor = describe_exception(exc)
        print(f"{descriptor.headline} {descriptor.detail}", file=sys.stderr)
        return EXIT_USAGE
    except AcsEmailError as exc:
        descriptor = describe_exception(exc)
        logger.error("Send failed", error=descriptor.detail)
        print(descriptor.headline, file=sys.stderr)
        if descriptor.suggestion:
            print(descriptor.suggestion, file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_FAILED


__all__ = ["build_parser", "main", "message_from_args", "run_send"]
