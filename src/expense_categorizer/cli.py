"""
Expense categorizer CLI.

Usage:
    expense-categorizer analyze --min-confidence 0.8 --limit 100
    expense-categorizer apply --min-confidence 0.85 --limit 500
    expense-categorizer single "K-ELECTRIC BILL PAYMENT" --amount 15000
    expense-categorizer report --limit 20
    expense-categorizer patterns
    expense-categorizer stats
    expense-categorizer serve --port 8000

Apply makes permanent changes to the store. Run analyze first to preview them.
"""

import argparse
import asyncio
import signal
from decimal import Decimal

from expense_categorizer.app import build_store
from expense_categorizer.core import settings
from expense_categorizer.core.errors import CategorizerError
from expense_categorizer.domain.rules import load_rule_catalog
from expense_categorizer.logger import get_logger, setup_logging
from expense_categorizer.manager import CategorizationEngine
from expense_categorizer.models import BulkRunOptions, BulkRunResult
from expense_categorizer.services.recategorization import BulkRecategorizer
from expense_categorizer.services.reporting import ReportGenerator
from expense_categorizer.services.store_data import build_report_statistics, confidence_level

logger = get_logger(__name__)

DESCRIPTION_PREVIEW = 40


def _preview(text: str) -> str:
    if len(text) <= DESCRIPTION_PREVIEW:
        return text
    return f"{text[:DESCRIPTION_PREVIEW]}..."


def _print_suggestions(result: BulkRunResult) -> None:
    if not result.suggestions:
        return
    print("\nTop suggestions:")
    for idx, suggestion in enumerate(result.suggestions[:10], start=1):
        print(f"{idx}. expense {suggestion.transaction_id}")
        print(f"   -> {suggestion.suggested_category_name} ({suggestion.confidence * 100:.1f}%)")
        print(f"   Reason: {suggestion.reasoning}")


async def _open_engine() -> CategorizationEngine:
    store = build_store()
    try:
        engine = CategorizationEngine(store)
        await engine.initialize()
    except CategorizerError:
        await store.aclose()
        raise
    return engine


async def cmd_analyze(args: argparse.Namespace) -> int:
    engine = await _open_engine()
    try:
        print(f"Analyzing expenses with confidence >= {args.min_confidence} (limit: {args.limit})...")
        result = await BulkRecategorizer(engine).run(BulkRunOptions(
            min_confidence=args.min_confidence,
            dry_run=True,
            limit=args.limit,
            order=args.order,
        ))
        print(f"   Processed: {result.processed_count} expenses")
        print(f"   High confidence suggestions: {result.high_confidence_count}")
        print(f"   Average confidence: {result.average_confidence * 100:.1f}%")
        _print_suggestions(result)
        if result.high_confidence_count:
            print("\nTo apply these changes, run:")
            print(f"   expense-categorizer apply --min-confidence {args.min_confidence} --limit {args.limit}")
    finally:
        await engine.store.aclose()
    return 0


async def cmd_apply(args: argparse.Namespace) -> int:
    if args.min_confidence < settings.BULK_APPLY_MIN_CONFIDENCE:
        print(
            f"Error: minimum confidence for apply is {settings.BULK_APPLY_MIN_CONFIDENCE} "
            f"(got {args.min_confidence})."
        )
        return 1

    engine = await _open_engine()
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        # Signal handlers are unavailable on some platforms and outside the main thread.
        pass

    try:
        print(f"Applying recategorization with confidence >= {args.min_confidence} (max {args.limit} updates)...")
        result = await BulkRecategorizer(engine).run(
            BulkRunOptions(min_confidence=args.min_confidence, dry_run=False, limit=args.limit),
            cancel_event=cancel_event,
        )
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await engine.store.aclose()

    print(f"   Total processed: {result.processed_count}")
    print(f"   Successfully updated: {result.updated_count} expenses")
    print(f"   Failed: {result.failed_count}")
    print(f"   Average confidence: {result.average_confidence * 100:.1f}%")
    for failure in result.failures:
        print(f"   ! expense {failure.transaction_id}: {failure.status} {failure.error or ''}".rstrip())
    if result.cancelled:
        print("   Run was cancelled before all updates were written.")
    return 1 if result.failed_count else 0


async def cmd_single(args: argparse.Namespace) -> int:
    engine = await _open_engine()
    try:
        print(f'Categorizing: "{args.description}" (amount {args.amount})')
        suggestion = engine.classify(args.description, args.notes, args.amount)
    finally:
        await engine.store.aclose()

    print(f"   Category: {suggestion.suggested_category_name}")
    print(f"   Confidence: {suggestion.confidence * 100:.1f}%")
    print(f"   Reasoning: {suggestion.reasoning}")
    if suggestion.matched_keywords:
        print(f"   Matched keywords: {', '.join(suggestion.matched_keywords)}")
    if suggestion.matched_script_patterns:
        print(f"   Matched script patterns: {', '.join(suggestion.matched_script_patterns)}")
    print(f"\nConfidence level: {confidence_level(suggestion.confidence)}")
    return 0


async def cmd_report(args: argparse.Namespace) -> int:
    engine = await _open_engine()
    try:
        rows = await ReportGenerator(engine).report(transaction_id=args.expense_id, limit=args.limit)
    finally:
        await engine.store.aclose()

    if not rows:
        print("No expenses found for report.")
        return 0

    stats = build_report_statistics(rows)
    print(
        f"Overall accuracy: {stats['correctly_classified']}/{stats['total_analyzed']} "
        f"({stats['accuracy']}%)"
    )
    print(f"Average confidence: {stats['average_confidence'] * 100:.1f}%\n")
    for idx, row in enumerate(rows, start=1):
        status = "OK " if row.is_correct else "FIX"
        print(f"{idx}. [{status}] {row.amount} - \"{_preview(row.description)}\"")
        print(
            f"   Current: {row.current_category or 'Uncategorized'} | "
            f"Suggested: {row.suggested_category} ({row.confidence * 100:.1f}%)"
        )
        if not row.is_correct:
            print(f"   {row.reasoning}")
    return 0


def cmd_patterns(args: argparse.Namespace) -> int:
    catalog = load_rule_catalog(settings.RULES_PATH)
    print(f"Categorization patterns (catalog v{catalog.version})\n")
    for entry in catalog.all_entries():
        print(f"{entry.category_name} (base confidence {entry.base_confidence}):")
        print(f"  Keywords: {', '.join(entry.keywords)}")
        if entry.script_patterns:
            print(f"  Script patterns: {', '.join(entry.script_patterns)}")
        for amount_range in entry.amount_ranges:
            print(f"  Amount {amount_range.min}-{amount_range.max}: weight {amount_range.weight}")
        print("")
    return 0


async def cmd_stats(args: argparse.Namespace) -> int:
    engine = await _open_engine()
    try:
        stats = engine.stats()
    finally:
        await engine.store.aclose()
    for key, value in stats.items():
        print(f"   {key.replace('_', ' ').capitalize()}: {value}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from expense_categorizer.app import create_app
    from expense_categorizer.logger import get_logging_config

    uvicorn.run(create_app(), host=args.host, port=args.port, log_config=get_logging_config())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="expense-categorizer",
        description="Rule-based expense categorization and bulk recategorization.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Apply commands make permanent changes. Always run analyze first.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", title="commands", metavar="<command>")

    analyze_parser = subparsers.add_parser("analyze", help="Preview recategorization suggestions (dry run)")
    analyze_parser.add_argument("--min-confidence", type=float, default=0.7)
    analyze_parser.add_argument("--limit", type=int, default=100)
    analyze_parser.add_argument(
        "--order",
        choices=("encounter", "confidence"),
        default="encounter",
        help="Order of the listed suggestions (default: encounter)",
    )

    apply_parser = subparsers.add_parser("apply", help="Apply recategorization above a confidence threshold")
    apply_parser.add_argument("--min-confidence", type=float, required=True)
    apply_parser.add_argument("--limit", type=int, default=500)

    single_parser = subparsers.add_parser("single", help="Categorize one description")
    single_parser.add_argument("description")
    single_parser.add_argument("--notes", default="")
    single_parser.add_argument("--amount", type=Decimal, default=Decimal("1000"))

    report_parser = subparsers.add_parser("report", help="Compare stored categories with suggestions")
    report_parser.add_argument("--limit", type=int, default=20)
    report_parser.add_argument("--expense-id", default=None)

    subparsers.add_parser("patterns", help="Show the rule catalog")
    subparsers.add_parser("stats", help="Show engine statistics")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


ASYNC_COMMANDS = {
    "analyze": cmd_analyze,
    "apply": cmd_apply,
    "single": cmd_single,
    "report": cmd_report,
    "stats": cmd_stats,
}
SYNC_COMMANDS = {
    "patterns": cmd_patterns,
    "serve": cmd_serve,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(args.log_level)

    try:
        if args.command in ASYNC_COMMANDS:
            return asyncio.run(ASYNC_COMMANDS[args.command](args))
        return SYNC_COMMANDS[args.command](args)
    except CategorizerError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
