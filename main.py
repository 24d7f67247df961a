"""CLI entrypoint for the business-card enrichment pipeline."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from api_client import GeminiClient
from card_reader import load_image, normalize_card, read_cards
from config import Settings
from errors import ApiError
from jobs import run_dormant_revival, run_related_backfill
from notifications import Notifier
from orchestrator import Enricher, register_cards
from record_store import CsvRecordStore
from staleness import dashboard_stats, select_dormant
from web_search import WebSearchClient


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Enrich business-card contacts and run follow-up batches")
    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="Register cards and enrich them")
    source = register.add_mutually_exclusive_group(required=True)
    source.add_argument("--cards", type=Path, help="JSON file with one card object or a list of cards")
    source.add_argument("--image", type=Path, action="append", help="Card image; repeat for front/back or several cards")
    register.add_argument(
        "--mode",
        choices=["merge", "multi"],
        default="merge",
        help="'merge': all images show one card (front/back). 'multi': one card per image.",
    )
    register.add_argument("--staff", default="", help="Name of the staff member who received the cards")
    register.add_argument("--dry-run", action="store_true", help="Only print the cards that would be registered")

    for name, help_text in (
        ("dormant", "Draft re-engagement emails for dormant contacts"),
        ("related-backfill", "Fill missing related-company summaries"),
    ):
        job = sub.add_parser(name, help=help_text)
        job.add_argument("--dry-run", action="store_true", help="Only print eligible records, without API calls")

    sub.add_parser("stats", help="Print dashboard counts as JSON")
    return parser.parse_args(argv)


def load_cards(args: argparse.Namespace, client: GeminiClient) -> list[dict[str, str]]:
    """Cards come either from a prepared JSON file or from image extraction."""
    if args.cards is not None:
        data = json.loads(args.cards.read_text(encoding="utf-8"))
        items = data if isinstance(data, list) else [data]
        return [normalize_card(item) for item in items if isinstance(item, dict)]

    images = [load_image(path) for path in args.image]
    return read_cards(client, images, mode=args.mode)


def run_register(args: argparse.Namespace, settings: Settings) -> int:
    store = CsvRecordStore(settings.data_dir)
    client = GeminiClient(settings)
    notifier = Notifier(settings, store)

    try:
        cards = load_cards(args, client)
    except (ApiError, OSError, ValueError) as exc:
        logging.error("Card extraction failed: %s", exc)
        return 1
    logging.info("Read %s card(s)", len(cards))

    if args.dry_run:
        for card in cards:
            logging.info("[dry-run] Would register: %s / %s", card.get("companyName"), card.get("fullName"))
        return 0

    enricher = Enricher(settings, client, WebSearchClient(settings), notifier)
    results = register_cards(cards, args.staff, store, enricher)
    for result in results:
        if result.record.duplicate_alert:
            logging.warning(result.record.duplicate_alert)
    logging.info("Registration complete. registered=%s failed=%s", len(results), len(cards) - len(results))
    return 0 if len(results) == len(cards) else 1


def run_dormant(settings: Settings, dry_run: bool) -> int:
    store = CsvRecordStore(settings.data_dir)
    if dry_run:
        dormant = select_dormant(store.read_all(), settings.dormant_threshold_days, datetime.now(UTC))
        for record, days in dormant[: settings.max_batch_records]:
            logging.info("[dry-run] Would draft: %s / %s (%s days)", record.company_name, record.full_name, days)
        logging.info("[dry-run] dormant=%s cap=%s", len(dormant), settings.max_batch_records)
        return 0

    run = run_dormant_revival(
        store, GeminiClient(settings), WebSearchClient(settings), Notifier(settings, store), settings
    )
    logging.info("Run complete. %s", run.summary())
    return 0


def run_backfill(settings: Settings, dry_run: bool) -> int:
    store = CsvRecordStore(settings.data_dir)
    if dry_run:
        eligible = [r for r in store.read_all() if r.company_name.strip() and not r.related_summary.strip()]
        for record in eligible[: settings.max_batch_records]:
            logging.info("[dry-run] Would analyze related companies for: %s", record.company_name)
        logging.info("[dry-run] eligible=%s cap=%s", len(eligible), settings.max_batch_records)
        return 0

    run = run_related_backfill(store, GeminiClient(settings), Notifier(settings, store), settings)
    logging.info("Run complete. %s", run.summary())
    return 0


def run_stats(settings: Settings) -> int:
    store = CsvRecordStore(settings.data_dir)
    stats = dashboard_stats(
        store.read_all(),
        settings.dormant_threshold_days,
        datetime.now(UTC),
        ZoneInfo(settings.display_timezone),
    )
    print(json.dumps(stats.as_dict(), ensure_ascii=False, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the selected command."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)
    settings = Settings.from_env()

    if args.command == "register":
        return run_register(args, settings)
    if args.command == "dormant":
        return run_dormant(settings, args.dry_run)
    if args.command == "related-backfill":
        return run_backfill(settings, args.dry_run)
    return run_stats(settings)


if __name__ == "__main__":
    raise SystemExit(main())
