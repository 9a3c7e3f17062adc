"""Command-line interface for the Reddit deals parser."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import structlog
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .client import ClientError, RedditClient
from .database import get_database
from .images import HttpPageFetcher
from .models import BatchReport, ParsedDeal, ParserConfig, RawPost
from .parser import PostParser
from .registry import DEFAULT_REGISTRY, Registry, RegistryError

app = typer.Typer(help="Reddit deal post parser")
console = Console()

# Global configuration
CONFIG_FILE = Path("configs/parser.yaml")
REGISTRY_FILE = Path("configs/registry.yaml")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """Configure logging and environment."""
    load_dotenv()
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


@app.command()
def parse(
    input_file: Path = typer.Argument(..., help="JSON file with a Reddit listing or a list of posts"),
    output: Optional[str] = typer.Option(None, help="Output file for deals (JSON Lines format)"),
    fetch_images: bool = typer.Option(True, help="Fetch Open Graph images from product pages"),
):
    """Parse posts from a saved listing file."""
    if not input_file.exists():
        console.print(f"❌ Input file not found: {input_file}", style="red")
        raise typer.Exit(1)

    try:
        posts = _load_posts(json.loads(input_file.read_text(encoding="utf-8")))
    except (ValueError, KeyError) as e:
        console.print(f"❌ Could not read posts: {str(e)}", style="red")
        raise typer.Exit(1)

    config = _load_parser_config()
    if not fetch_images:
        config = config.model_copy(update={'fetch_og_images': False})

    report = asyncio.run(_parse_posts(posts, config, _load_registry()))

    if output:
        output_path = Path(output)
        _save_deals_to_file(report.deals, output_path)
        console.print(f"📁 Saved {len(report.deals)} deals to {output_path}")

    _show_report(report)


@app.command()
def fetch(
    subreddits: str = typer.Option("deals", help="Subreddits to fetch from (comma-separated)"),
    sort: str = typer.Option("hot", help="Listing sort: hot, new, top or rising"),
    limit: int = typer.Option(25, help="Posts per subreddit"),
    with_comments: bool = typer.Option(True, help="Look for product links in comments"),
    save: bool = typer.Option(True, help="Save parsed deals to the database"),
    output: Optional[str] = typer.Option(None, help="Output file for deals (JSON Lines format)"),
):
    """Fetch posts from subreddits and parse them into deals."""
    names = [s.strip() for s in subreddits.split(",") if s.strip()]
    if not names:
        console.print("❌ No subreddits given", style="red")
        raise typer.Exit(1)

    console.print(f"🚀 Fetching deals from: {', '.join(names)}")

    config = _load_parser_config()
    registry = _load_registry()
    reports = asyncio.run(_fetch_and_parse(names, sort, limit, with_comments, config, registry))

    deals: List[ParsedDeal] = []
    for report in reports:
        deals.extend(report.deals)

    if save:
        db = get_database()
        saved_count = db.save_deals(deals)
        console.print(f"💾 Saved {saved_count} deals to database")

    if output:
        output_path = Path(output)
        _save_deals_to_file(deals, output_path)
        console.print(f"📁 Saved {len(deals)} deals to {output_path}")

    for report in reports:
        _show_report(report)


@app.command()
def classify(
    limit: int = typer.Option(20, help="Deals per batch"),
    all_batches: bool = typer.Option(False, "--all", help="Keep going until every deal is processed"),
    delay: float = typer.Option(4.0, help="Seconds between model calls"),
):
    """Clean up stored deal titles with the language model."""
    from .classifier import TitleClassifier

    classifier = TitleClassifier(get_database(), registry=_load_registry(), delay_seconds=delay)

    if all_batches:
        result = classifier.process_all(limit)
    else:
        result = classifier.process_unclassified(limit)

    console.print(
        f"✅ Processed {result.processed}, skipped {result.skipped}, "
        f"failed {result.failed}, categories updated {result.categories_updated}"
    )


@app.command()
def stores():
    """List registered merchants."""
    registry = _load_registry()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Store", style="cyan")
    table.add_column("Domain patterns", style="green")

    for name, patterns in registry.stores:
        table.add_row(name, ", ".join(p.pattern for p in patterns))

    console.print(table)


@app.command()
def categories():
    """List categories and their keywords."""
    registry = _load_registry()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Keywords", style="yellow")

    for slug, keywords in registry.categories:
        table.add_row(slug, ", ".join(keywords))

    console.print(table)


@app.command()
def stats():
    """Show database statistics."""
    console.print("📊 Database statistics:")

    db = get_database()
    console.print(f"Total deals: {db.get_deal_count()}")

    store_stats = db.get_store_stats()
    if store_stats:
        console.print("\n📈 By store:")
        for store, entry in sorted(store_stats.items()):
            console.print(
                f"  {store}: {entry['total_deals']} deals "
                f"(avg {entry['avg_discount']:.0f}% off)"
            )


def _load_parser_config() -> ParserConfig:
    """Load parser settings, falling back to defaults."""
    if not CONFIG_FILE.exists():
        return ParserConfig()

    try:
        return ParserConfig.from_yaml(CONFIG_FILE)
    except Exception as e:
        console.print(f"❌ Error loading configuration: {str(e)}", style="red")
        raise typer.Exit(1)


def _load_registry() -> Registry:
    """Load registry overrides, falling back to the built-in tables."""
    if not REGISTRY_FILE.exists():
        return DEFAULT_REGISTRY

    try:
        return Registry.from_yaml(REGISTRY_FILE)
    except RegistryError as e:
        console.print(f"❌ {str(e)}", style="red")
        raise typer.Exit(1)


def _load_posts(data: Any) -> List[RawPost]:
    """Accept a listing response, a list of listing children or plain posts."""
    if isinstance(data, dict):
        data = data.get('data', {}).get('children', [])
    if not isinstance(data, list):
        raise ValueError("Expected a listing object or a list of posts")

    return [RawPost.from_listing_child(item) for item in data]


async def _parse_posts(posts: List[RawPost], config: ParserConfig, registry: Registry) -> BatchReport:
    async with HttpPageFetcher(config.crawler_user_agent) as fetcher:
        parser = PostParser(config, registry, fetcher)
        return await parser.parse_batch(posts)


async def _fetch_and_parse(
    names: List[str],
    sort: str,
    limit: int,
    with_comments: bool,
    config: ParserConfig,
    registry: Registry,
) -> List[BatchReport]:
    """Fetch and parse each subreddit in turn."""
    reports = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        async with RedditClient() as client, HttpPageFetcher(config.crawler_user_agent) as fetcher:
            parser = PostParser(config, registry, fetcher)

            for name in names:
                task = progress.add_task(f"Fetching r/{name}...", total=None)
                try:
                    posts = await client.fetch_posts(name, sort=sort, limit=limit)
                    report = await parser.parse_batch(
                        posts, client.fetch_comments if with_comments else None
                    )
                    reports.append(report)
                    progress.update(task, description=f"✅ r/{name}: {len(report.deals)} deals")
                except ClientError as e:
                    progress.update(task, description=f"❌ r/{name}: {str(e)}")
                    console.print(f"Error fetching r/{name}: {str(e)}", style="red")

    return reports


def _save_deals_to_file(deals: List[ParsedDeal], output_path: Path) -> None:
    """Save deals to file in JSON Lines format."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        for deal in deals:
            f.write(json.dumps(deal.to_dict()) + '\n')


def _show_report(report: BatchReport) -> None:
    """Show summary of a parsed batch."""
    console.print("\n📊 Parse Summary:")
    console.print(f"  Parsed: {report.parsed_count}")
    console.print(f"  Skipped: {report.skipped_count}")
    console.print(f"  Failed: {report.failed_count}")

    if not report.deals:
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Title", style="cyan")
    table.add_column("Price", style="green")
    table.add_column("Off", style="yellow")
    table.add_column("Store")
    table.add_column("Category")

    for deal in report.deals:
        price = f"{deal.deal_price} {deal.currency.value}" if deal.deal_price is not None else "-"
        discount = f"{deal.discount_percent}%" if deal.discount_percent else "-"
        table.add_row(deal.title[:60], price, discount, deal.store or "-", deal.category_slug)

    console.print(table)


if __name__ == "__main__":
    app()
