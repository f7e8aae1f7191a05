"""
Command line market analysis.

Examples:
    python -m comparables historical --artist "Carl Malmsten" --object-type stol
    python -m comparables historical --title "Carl Malmsten fåtölj Pilgrim" --valuation 8000
    python -m comparables live --query "Yamaha DX7" --json

Without --query or --title the built-in strategies are searched directly.
--query is treated as a user selection and is never broadened.
--title generates a query first (Anthropic when ANTHROPIC_API_KEY is set,
a heuristic query otherwise).
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from comparables.config import get_engine_settings
from comparables.marketplace import MarketplaceSearchClient
from comparables.models import LiveAnalysisResult, MarketAnalysisResult
from comparables.orchestrator import ComparableSalesOrchestrator
from comparables.query import QueryAuthority, QueryGenerator
from comparables.search import parse_query_preserving_quotes
from comparables.settings_store import create_settings_store

logger = logging.getLogger(__name__)


def _money(value: Optional[float], currency: str = "") -> str:
    if value is None:
        return "-"
    text = f"{value:,.0f}".replace(",", " ")
    return f"{text} {currency}".strip()


def format_historical(result: MarketAnalysisResult) -> str:
    lines = [f"Query: {result.actual_search_query or '-'} ({result.search_strategy or 'no strategy'})"]
    if not result.has_comparable_data:
        lines.append(f"No comparable data: {result.limitations or 'unknown reason'}")
        if result.error:
            lines.append(f"Error: {result.error}")
        return "\n".join(lines)

    price_range = result.price_range
    lines.append(
        f"Price range: {_money(price_range.low)} - {_money(price_range.high, price_range.currency)}"
    )
    lines.append(f"Confidence: {result.confidence:.2f}")
    lines.append(f"Sales analyzed: {result.analyzed_sales} of {result.total_matches} matches")
    if result.statistics:
        lines.append(
            f"Median {_money(result.statistics.median)}, average {_money(result.statistics.average)}"
        )
    if result.trend:
        lines.append(f"Trend: {result.trend.description}")
        if result.trend.warning:
            lines.append(f"  Warning: {result.trend.warning}")
    if result.market_context:
        lines.append(f"Market: {result.market_context}")
    if result.exceptional_sales:
        lines.append(f"Exceptional: {result.exceptional_sales.description}")
        for sale in result.exceptional_sales.sales:
            lines.append(f"  {_money(sale.price)}  {sale.title}")
    if result.recent_sales:
        lines.append("Recent sales:")
        for sale in result.recent_sales:
            date = sale.date.date().isoformat() if sale.date else "????-??-??"
            lines.append(f"  {date}  {_money(sale.price):>10}  {sale.title}")
    if result.limitations:
        lines.append(f"Limitations: {result.limitations}")
    return "\n".join(lines)


def format_live(result: Optional[LiveAnalysisResult]) -> str:
    if result is None:
        return "No query to search for live auctions (use --query or --title)"

    lines = [f"Query: {result.actual_search_query or '-'} ({result.search_strategy or 'no strategy'})"]
    if not result.has_live_data:
        lines.append(f"No live data: {result.limitations or 'unknown reason'}")
        if result.error:
            lines.append(f"Error: {result.error}")
        return "\n".join(lines)

    lines.append(f"Running auctions: {result.analyzed_live_items} of {result.total_matches} matches")
    if result.current_estimates:
        lines.append(
            f"Estimates: {_money(result.current_estimates.low)} - {_money(result.current_estimates.high)}"
        )
    if result.current_bids:
        lines.append(f"Bids: {_money(result.current_bids.low)} - {_money(result.current_bids.high)}")
    if result.market_activity:
        activity = result.market_activity
        lines.append(
            f"Activity: {activity.total_bids} bids, {activity.average_bids_per_item:.1f} per item, "
            f"{activity.reserves_met_percentage}% reserves met"
        )
    lines.append(f"Sentiment: {result.market_sentiment.value}")
    for item in result.live_items:
        lines.append(
            f"  {_money(item.current_bid):>10}  {item.bid_count:>3} bids  {item.time_remaining:>10}  {item.title}"
        )
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="comparables", description="Comparable-sales market analysis")
    sub = ap.add_subparsers(dest="mode", required=True)

    for mode, help_text in (
        ("historical", "Analyze ended auctions"),
        ("live", "Analyze running auctions"),
    ):
        p = sub.add_parser(mode, help=help_text)
        p.add_argument("--artist", help="Artist, maker or brand")
        p.add_argument("--object-type", help="Object type, e.g. stol or armbandsur")
        p.add_argument("--period", help="Period or year")
        p.add_argument("--technique", help="Technique or material")
        p.add_argument("--query", help="Search exactly this query, quoted phrases are kept")
        p.add_argument("--title", help="Generate the query from this item title")
        p.add_argument("--description", default="", help="Item description used with --title")
        p.add_argument("--exclude-seller", help="Seller (company) id to leave out of results")
        p.add_argument("--json", action="store_true", help="Print the full result as JSON")
        if mode == "historical":
            p.add_argument("--valuation", type=float, help="Current valuation, enables valuation-based exceptional sales")
    return ap


async def run(args: argparse.Namespace) -> int:
    settings = get_engine_settings()
    authority = QueryAuthority(settings.marketplace.search_page_url)

    if args.query:
        authority.update_user_selection(parse_query_preserving_quotes(args.query))
    elif args.title:
        QueryGenerator(authority, settings.generator).generate(args.title, args.description, args.artist)

    if args.mode == "historical" and not (args.artist or args.object_type or authority.has_query()):
        print("Give at least --artist, --object-type, --query or --title", file=sys.stderr)
        return 2

    orchestrator = ComparableSalesOrchestrator(
        client=MarketplaceSearchClient(settings),
        authority=authority,
        settings_store=create_settings_store(settings),
        settings=settings,
    )
    try:
        if args.exclude_seller is not None:
            await orchestrator.set_excluded_seller(args.exclude_seller.strip() or None)

        if args.mode == "historical":
            result = await orchestrator.analyze_historical(
                args.artist, args.object_type, args.period, args.technique, args.valuation
            )
            print(result.model_dump_json(indent=2) if args.json else format_historical(result))
            return 0 if result.has_comparable_data else 1

        live = await orchestrator.analyze_live(args.artist, args.object_type, args.period, args.technique)
        if args.json:
            print(live.model_dump_json(indent=2) if live else "null")
        else:
            print(format_live(live))
        return 0 if live and live.has_live_data else 1
    finally:
        await orchestrator.close()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
