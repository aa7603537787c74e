# lead_scout/main.py
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .acquisition import BrowserLaunchError
from .config import ScraperConfig, parse_sources
from .pipeline import LeadPipeline

# --- Configure Logging ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
    handlers=[
        logging.FileHandler('lead_scout.log', 'a'),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger('LeadScout')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Discover, enrich and store business leads.")
    parser.add_argument("--query", help="What to search for, e.g. 'plumbers'")
    parser.add_argument("--location", help="Where to search, e.g. 'Austin, TX'")
    parser.add_argument("--max-results", type=int, help="Maximum results per source")
    parser.add_argument("--sources", help="1 = Google Maps, 2 = Yellow Pages, 3 = both")
    parser.add_argument("--emails", choices=["y", "n"], help="Visit websites to find emails")
    parser.add_argument("--output", help="Excel file name (without extension)")
    parser.add_argument("--yellow-pages-strategy", choices=["paginate", "scroll"], default="paginate")
    return parser


def _ask(value: Optional[str], prompt: str) -> str:
    if value is not None:
        return value
    return input(prompt).strip()


def _parse_max_results(answer: str, default: int = 50) -> int:
    try:
        value = int(answer)
    except (TypeError, ValueError):
        logger.warning(f"Invalid max results '{answer}'; using {default}.")
        return default
    return value if value > 0 else default


def config_from_args(argv: Optional[List[str]] = None) -> ScraperConfig:
    """Flags win; anything not given on the command line is prompted for."""
    args = build_parser().parse_args(argv)
    query = _ask(args.query, "Enter search query (e.g. 'restaurants'): ")
    location = _ask(args.location, "Enter location (e.g. 'New York'): ")
    max_results = args.max_results
    if max_results is None:
        max_results = _parse_max_results(_ask(None, "Max results per source (default 50): ") or "50")
    sources = parse_sources(_ask(args.sources, "Sources - 1: Google Maps, 2: Yellow Pages, 3: Both: "))
    emails = _ask(args.emails, "Extract emails from websites? (y/n): ").lower() == "y"
    output = _ask(args.output, "Output file name (default business_leads): ") or "business_leads"

    return ScraperConfig(
        query=query,
        location=location,
        max_results=max_results,
        sources=sources,
        extract_emails=emails,
        output_file=output,
        yellow_pages_strategy=args.yellow_pages_strategy,
    )


async def main(argv: Optional[List[str]] = None) -> int:
    """Main asynchronous entry point for the application."""
    config = config_from_args(argv)
    if not config.query or not config.location:
        logger.error("Both a search query and a location are required.")
        return 0
    pipeline = LeadPipeline(config)
    try:
        summary = await pipeline.run()
    except BrowserLaunchError as e:
        logger.critical(f"Fatal error: {e}")
        return 1

    print("\n--- SCRAPING COMPLETE ---")
    for line in summary.lines():
        print(line)
    print("-------------------------\n")
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
