"""
Command-line interface for the site graph crawler.
"""
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from sitegraph.core import (
    DEFAULT_MAX_PAGES,
    DEFAULT_TIMEOUT_S,
    DEFAULT_USER_AGENT,
    CrawlStats,
    crawl,
)
from sitegraph.errors import CrawlError


def print_summary(stats: CrawlStats) -> None:
    """Print crawl summary to stderr."""
    sys.stderr.write("=" * 50 + "\n")
    sys.stderr.write("CRAWL SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")

    sys.stderr.write(f"Pages fetched:          {stats.pages_crawled}\n")
    sys.stderr.write(f"Sitemap seeds:          {stats.sitemap_seeds}\n")
    sys.stderr.write(f"Synthesized ancestors:  {stats.synthesized}\n")
    sys.stderr.write(f"Pages without title:    {stats.pages_without_title}\n")
    sys.stderr.write(f"Pages without H1:       {stats.pages_without_h1}\n")
    if stats.cancelled:
        sys.stderr.write("Crawl stopped early; graph is partial.\n")
    sys.stderr.write("\n")

    if stats.error_counts:
        sys.stderr.write("Errors by type:\n")
        for error_type, count in sorted(stats.error_counts.items()):
            label = "Connection errors" if error_type == "connection_error" else f"HTTP {error_type}"
            sys.stderr.write(f"  {label}: {count}\n")
    else:
        sys.stderr.write("No errors encountered.\n")

    sys.stderr.write("\n")


def generate_output_path(domain: str) -> Path:
    """Generate output path: crawls/{hostname}_{datetime}.json"""
    hostname_safe = domain.replace(".", "_").replace(":", "_") or "unknown"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    crawls_dir = Path("crawls")
    crawls_dir.mkdir(exist_ok=True)

    return crawls_dir / f"{hostname_safe}_{timestamp}.json"


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the crawler CLI."""
    parser = argparse.ArgumentParser(
        description="Crawl a domain into a path hierarchy graph and output it as JSON."
    )
    parser.add_argument("domain", help="Domain or URL to crawl (e.g. example.com)")
    parser.add_argument("--depth", type=int, default=1, help="Maximum path depth, 1-5 (default: 1)")
    parser.add_argument(
        "--max-pages",
        type=int,
        default=DEFAULT_MAX_PAGES,
        help=f"Maximum pages to register (default: {DEFAULT_MAX_PAGES})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_S,
        help=f"Request timeout in seconds (default: {DEFAULT_TIMEOUT_S:g})",
    )
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    parser.add_argument("--respect-robots", action="store_true", help="Try to respect robots.txt Disallow rules")
    parser.add_argument("--time-limit", type=float, help="Stop crawling after this many seconds")
    parser.add_argument("--out", help="Output file path, or '-' for stdout (default: auto-generated in crawls/)")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    parser.add_argument("--verbose", action="store_true", help="Show progress and summary")
    args = parser.parse_args(argv)

    try:
        graph, stats = crawl(
            domain=args.domain,
            depth=args.depth,
            max_pages=args.max_pages,
            timeout_s=args.timeout,
            user_agent=args.user_agent,
            respect_robots=args.respect_robots,
            verbose=args.verbose,
            time_limit_s=args.time_limit,
        )
    except CrawlError as e:
        sys.stderr.write(f"error: {e}\n")
        return 1

    if args.verbose:
        print_summary(stats)

    json_text = json.dumps(graph.to_dict(), ensure_ascii=False, indent=2 if args.pretty else None)

    if args.out == "-":
        print(json_text)
    else:
        output_path = Path(args.out) if args.out else generate_output_path(graph.domain)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json_text, encoding="utf-8")
        if args.verbose:
            sys.stderr.write(f"Results written to: {output_path}\n")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
