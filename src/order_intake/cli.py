"""CLI entry point for order-intake.

Usage:
    order-intake parse "Ich moechte 5 Laptops bestellen" --product Laptop
    order-intake process --sender a@b.de "Bitte 3 Drucker bestellen"
    order-intake poll                # Fetch unread mail once
    order-intake watch --interval 5  # Poll every 5 minutes
    order-intake queue               # Pending orders awaiting review
    order-intake approve 42 --by alice
    order-intake reject 42 --reason "Out of stock"
    order-intake errors --dismiss 7  # Drop a handled parse error
    order-intake stats
    order-intake check-mail          # Log in to IMAP and SMTP without sending
    order-intake init-db
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from order_intake.core.config import Config, IntakePolicy
from order_intake.core.database import Database
from order_intake.core.logging import configure_logging
from order_intake.mail.imap import ImapMailbox, MailboxError
from order_intake.models.pending_order import PendingOrderStatus
from order_intake.parsing import CatalogEntry, parse_email_body
from order_intake.schemas.intake import ParsePreview
from order_intake.schemas.pending_order import (
    ApprovalResult,
    IntakeStats,
    ParsingErrorResponse,
    PendingOrderListResponse,
    PendingOrderResponse,
)
from order_intake.services.mail_poller import MailPoller, PollResult
from order_intake.services.notifications import (
    SmtpConnectionError,
    SmtpNotifier,
    notifier_from_config,
)
from order_intake.services.order_intake import OrderIntakeService, build_preview
from order_intake.services.review_service import (
    InvalidStatusTransitionError,
    OrderProcessingError,
    ParsingErrorNotFoundError,
    PendingOrderNotFoundError,
    ReviewService,
)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="order-intake",
        description="Parse order emails into pending orders and review them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Common arguments
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in project root)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parse_cmd = subparsers.add_parser("parse", help="Test-parse an email body (nothing stored)")
    parse_cmd.add_argument("body", help="Email body text")
    parse_cmd.add_argument(
        "--product",
        action="append",
        default=[],
        metavar="NAME",
        help="Catalog product to match against (repeatable; default: products table)",
    )

    process_cmd = subparsers.add_parser("process", help="Process an email as if it had arrived")
    process_cmd.add_argument("body", help="Email body text, or - to read stdin")
    process_cmd.add_argument("--sender", required=True, help="Sender address")
    process_cmd.add_argument("--subject", default=None, help="Subject line")
    process_cmd.add_argument("--message-id", default=None, help="External message id")

    subparsers.add_parser("poll", help="Fetch and process unread mail once")

    watch_cmd = subparsers.add_parser("watch", help="Poll the mailbox periodically")
    watch_cmd.add_argument(
        "--interval",
        type=float,
        default=None,
        metavar="MINUTES",
        help="Minutes between polls (default: POLL_INTERVAL_MINUTES)",
    )

    queue_cmd = subparsers.add_parser("queue", help="List pending orders awaiting review")
    queue_cmd.add_argument(
        "--status",
        choices=[s.value for s in PendingOrderStatus],
        default=None,
        help="Filter by status (default: PENDING_REVIEW and DUPLICATE_WARNING)",
    )
    queue_cmd.add_argument("--min-confidence", type=float, default=None)
    queue_cmd.add_argument("--max-confidence", type=float, default=None)
    queue_cmd.add_argument("--limit", type=int, default=50)
    queue_cmd.add_argument("--offset", type=int, default=0)

    errors_cmd = subparsers.add_parser("errors", help="List recent parsing errors")
    errors_cmd.add_argument("--limit", type=int, default=50)
    errors_cmd.add_argument(
        "--dismiss",
        type=int,
        default=None,
        metavar="ID",
        help="Delete a parsing error that has been handled",
    )

    subparsers.add_parser("stats", help="Show intake statistics")

    approve_cmd = subparsers.add_parser("approve", help="Approve a pending order")
    approve_cmd.add_argument("pending_order_id", type=int)
    approve_cmd.add_argument("--by", default=None, help="Reviewer name")
    approve_cmd.add_argument("--notes", default=None, help="Reviewer notes")
    approve_cmd.add_argument(
        "--product-id",
        type=int,
        default=None,
        help="Catalog product to order instead of the matched one",
    )

    reject_cmd = subparsers.add_parser("reject", help="Reject a pending order")
    reject_cmd.add_argument("pending_order_id", type=int)
    reject_cmd.add_argument("--reason", default=None, help="Reason sent to the customer")
    reject_cmd.add_argument("--notes", default=None, help="Reviewer notes")
    reject_cmd.add_argument(
        "--no-email",
        action="store_true",
        help="Don't send a rejection email",
    )

    subparsers.add_parser("init-db", help="Create database tables (development)")
    subparsers.add_parser("status", help="Show mail and intake configuration")
    subparsers.add_parser("check-mail", help="Test the IMAP and SMTP logins")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def get_env_file(args: argparse.Namespace) -> Path | None:
    """Get the .env file path from args or default location."""
    env_file = args.env_file
    if env_file is None:
        cli_module = Path(__file__).resolve()
        project_root = cli_module.parent.parent.parent
        env_file = project_root / ".env"
    return env_file if env_file.exists() else None


@asynccontextmanager
async def open_database(config: Config) -> AsyncIterator[Database]:
    """Connect to the configured database for the duration of a command."""
    database = Database(config.database_url)
    await database.connect()
    try:
        yield database
    finally:
        await database.disconnect()


def format_preview(preview: ParsePreview) -> str:
    """Format a parse preview for display."""
    if not preview.success:
        return f"Not parseable: {preview.error}"
    lines = [
        f"Quantity:      {preview.quantity}",
        f"Product:       {preview.product_name} (id={preview.product_id})",
        f"Raw phrase:    {preview.raw_product_name}",
        f"Match:         {preview.match_type}",
        f"Pattern:       {preview.pattern_used}",
        f"Confidence:    {preview.confidence:.2f}",
        f"Auto-approve:  {'yes' if preview.would_auto_approve else 'no'}",
    ]
    return "\n".join(lines)


def format_poll_result(result: PollResult) -> str:
    """Format poll counts for display."""
    if result.skipped:
        return "Poll skipped: another poll is in progress"
    if result.error:
        return f"Poll failed: {result.error}"
    return (
        f"Fetched {result.fetched}: {result.accepted} accepted, {result.rejected} rejected, "
        f"{result.skipped_known} already known, {result.failed} failed"
    )


def parse_body(args: argparse.Namespace, config: Config | None) -> None:
    """Handle parse command."""
    if args.product:
        catalog = [CatalogEntry(id=i, name=name) for i, name in enumerate(args.product, start=1)]
        policy = config.intake_policy() if config else IntakePolicy()
        preview = build_preview(
            parse_email_body(args.body, catalog),
            policy.auto_approve_threshold,
        )
    else:
        if config is None:
            print("No --product given and DATABASE_URL is not set", file=sys.stderr)
            sys.exit(1)

        async def _preview() -> ParsePreview:  # pragma: no cover
            async with open_database(config) as db, db.session() as session:
                service = OrderIntakeService(session, policy=config.intake_policy())
                return await service.test_parse(args.body)

        preview = asyncio.run(_preview())

    print(format_preview(preview))


def process_email(args: argparse.Namespace, config: Config) -> None:
    """Handle process command."""
    body = sys.stdin.read() if args.body == "-" else args.body

    async def _process() -> str:  # pragma: no cover
        async with open_database(config) as db, db.session() as session:
            service = OrderIntakeService(
                session,
                notifier=notifier_from_config(config),
                policy=config.intake_policy(),
            )
            result = await service.process_incoming_order_email(
                args.sender,
                args.subject,
                body,
                message_id=args.message_id,
            )
            return result.model_dump_json(indent=2)

    print(asyncio.run(_process()))


def build_poller(config: Config, database: Database) -> MailPoller:
    """Create a poller from configuration.

    Raises:
        MailboxError: If IMAP is not configured.
    """
    return MailPoller(
        database.session,
        ImapMailbox.from_config(config),
        notifier=notifier_from_config(config),
        policy=config.intake_policy(),
    )


def poll(args: argparse.Namespace, config: Config) -> None:
    """Handle poll command."""

    async def _poll() -> PollResult:  # pragma: no cover
        async with open_database(config) as db:
            return await build_poller(config, db).poll_once()

    try:
        result = asyncio.run(_poll())
    except MailboxError as e:
        print(f"Mailbox error: {e}", file=sys.stderr)
        sys.exit(1)

    print(format_poll_result(result))
    sys.exit(1 if result.error else 0)


def watch(args: argparse.Namespace, config: Config) -> None:
    """Handle watch command."""
    interval = args.interval or config.poll_interval_minutes

    async def _watch() -> None:  # pragma: no cover
        async with open_database(config) as db:
            poller = build_poller(config, db)
            poller.start(interval)
            try:
                await asyncio.Event().wait()
            finally:
                await poller.stop()

    print(f"Polling every {interval} minute(s). Press Ctrl+C to stop.")
    try:
        asyncio.run(_watch())
    except MailboxError as e:
        print(f"Mailbox error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nStopped.")


def show_queue(args: argparse.Namespace, config: Config) -> None:
    """Handle queue command."""

    async def _queue() -> PendingOrderListResponse:  # pragma: no cover
        async with open_database(config) as db, db.session() as session:
            return await ReviewService(session).list_queue(
                status=PendingOrderStatus(args.status) if args.status else None,
                min_confidence=args.min_confidence,
                max_confidence=args.max_confidence,
                limit=args.limit,
                offset=args.offset,
            )

    page = asyncio.run(_queue())

    print(f"Pending orders ({page.total} total)")
    print("=" * 60)
    for order in page.orders:
        print(
            f"#{order.id:<6} {order.status:<18} {order.confidence_score:.2f}  "
            f"{order.extracted_quantity} x {order.extracted_product_name}  <{order.sender_email}>"
        )
    if page.has_more:
        print(f"... use --offset {page.offset + page.limit} for more")


def show_errors(args: argparse.Namespace, config: Config) -> None:
    """Handle errors command."""
    if args.dismiss is not None:

        async def _dismiss() -> None:  # pragma: no cover
            async with open_database(config) as db, db.session() as session:
                await ReviewService(session).dismiss_error(args.dismiss)

        try:
            asyncio.run(_dismiss())
        except ParsingErrorNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"Parsing error {args.dismiss} dismissed")
        return

    async def _errors() -> list[ParsingErrorResponse]:  # pragma: no cover
        async with open_database(config) as db, db.session() as session:
            return await ReviewService(session).list_errors(limit=args.limit)

    errors = asyncio.run(_errors())

    print("Parsing errors")
    print("=" * 60)
    for error in errors:
        print(
            f"#{error.id:<6} {error.sender_email}  x{error.parse_attempt_count}  "
            f"{error.error_type}: {error.error_message}"
        )


def show_stats(args: argparse.Namespace, config: Config) -> None:
    """Handle stats command."""

    async def _stats() -> IntakeStats:  # pragma: no cover
        async with open_database(config) as db, db.session() as session:
            return await ReviewService(session).stats()

    stats = asyncio.run(_stats())

    print("Order Intake Statistics")
    print("=" * 60)
    print(f"Total pending orders: {stats.total}")
    print(f"  Pending review:     {stats.pending_review}")
    print(f"  Auto-approved:      {stats.auto_approved}")
    print(f"  Duplicate warning:  {stats.duplicate_warning}")
    print(f"  Approved:           {stats.approved}")
    print(f"  Rejected:           {stats.rejected}")
    print(f"  Processed:          {stats.processed}")
    print(f"Parse errors (7d):    {stats.errors_last_7_days}")
    if stats.average_confidence is not None:
        print(f"Avg confidence (7d):  {stats.average_confidence:.2f}")


def approve(args: argparse.Namespace, config: Config) -> None:
    """Handle approve command."""

    async def _approve() -> ApprovalResult:  # pragma: no cover
        async with open_database(config) as db, db.session() as session:
            service = ReviewService(session, notifier=notifier_from_config(config))
            return await service.approve(
                args.pending_order_id,
                actor=args.by,
                notes=args.notes,
                product_id=args.product_id,
            )

    try:
        result = asyncio.run(_approve())
    except (PendingOrderNotFoundError, InvalidStatusTransitionError, OrderProcessingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Pending order {args.pending_order_id} processed")
    print(f"Order:   #{result.order_id}")
    print(f"Invoice: {result.invoice_number} ({result.total_amount})")
    if not result.notified:
        print("Customer was not notified")


def reject(args: argparse.Namespace, config: Config) -> None:
    """Handle reject command."""

    async def _reject() -> PendingOrderResponse:  # pragma: no cover
        async with open_database(config) as db, db.session() as session:
            service = ReviewService(session, notifier=notifier_from_config(config))
            return await service.reject(
                args.pending_order_id,
                reason=args.reason,
                notes=args.notes,
                notify=not args.no_email,
            )

    try:
        order = asyncio.run(_reject())
    except (PendingOrderNotFoundError, InvalidStatusTransitionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Pending order {order.id} rejected")


def init_db(args: argparse.Namespace, config: Config) -> None:
    """Handle init-db command."""

    async def _init() -> None:  # pragma: no cover
        async with open_database(config) as db:
            await db.create_schema()

    asyncio.run(_init())
    print("Database tables created")


def show_status(args: argparse.Namespace, config: Config) -> None:
    """Handle status command."""
    print("Order Intake Configuration")
    print("=" * 60)
    if config.has_imap():
        print(
            f"IMAP:   {config.imap_user}@{config.imap_host}:{config.imap_port}"
            f"/{config.imap_mailbox}"
        )
    else:
        print("IMAP:   not configured")
    if config.has_smtp():
        print(f"SMTP:   {config.smtp_host}:{config.smtp_port} from {config.sender_address}")
    else:
        print("SMTP:   not configured (notifications disabled)")
    print(f"Poll interval:          {config.poll_interval_minutes} min")
    print(f"Auto-approve threshold: {config.auto_approve_threshold:.2f}")
    print(
        f"Rate limit:             {config.rate_limit_max_attempts} per "
        f"{config.rate_limit_window_seconds}s"
    )
    print(f"Duplicate window:       {config.duplicate_window_hours}h")

    problems = config.validate()
    if problems:
        print(f"\nInvalid settings: {', '.join(problems)}")
        sys.exit(1)


async def check_connections(config: Config) -> dict[str, str | None]:
    """Log in to the configured mail servers.

    Returns:
        Mapping of channel name to the failure message, or None when the
        login worked. Channels that are not configured are left out.
    """
    results: dict[str, str | None] = {}
    if config.has_imap():
        try:
            await ImapMailbox.from_config(config).check_connection()
            results["IMAP"] = None
        except MailboxError as e:
            results["IMAP"] = str(e)

    notifier = notifier_from_config(config)
    if isinstance(notifier, SmtpNotifier):
        try:
            await notifier.check_connection()
            results["SMTP"] = None
        except SmtpConnectionError as e:
            results["SMTP"] = str(e)
    return results


def check_mail(args: argparse.Namespace, config: Config) -> None:
    """Handle check-mail command."""
    results = asyncio.run(check_connections(config))
    if not results:
        print("Neither IMAP nor SMTP is configured", file=sys.stderr)
        sys.exit(1)

    for channel, error in results.items():
        print(f"{channel}:   {'OK' if error is None else f'FAILED ({error})'}")
    sys.exit(1 if any(error is not None for error in results.values()) else 0)


COMMANDS = {
    "process": process_email,
    "poll": poll,
    "watch": watch,
    "queue": show_queue,
    "errors": show_errors,
    "stats": show_stats,
    "approve": approve,
    "reject": reject,
    "init-db": init_db,
    "status": show_status,
    "check-mail": check_mail,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for order intake."""
    args = parse_args(argv)
    if args.command is None:
        build_parser().print_help()
        sys.exit(1)

    # Load configuration
    env_file = get_env_file(args)
    try:
        config: Config | None = Config.from_env(env_file)
    except ValueError as e:
        # Offline test-parsing works without a database
        if args.command == "parse" and args.product:
            config = None
        else:
            print(f"Configuration error: {e}", file=sys.stderr)
            sys.exit(1)

    if config is not None:
        configure_logging(config.log_level, json_logs=config.log_json)

    if args.command == "parse":
        parse_body(args, config)
        return

    assert config is not None
    COMMANDS[args.command](args, config)


if __name__ == "__main__":
    main()
