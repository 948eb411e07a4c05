"""
Frontier crawler: sitemap seeding plus BFS over same-host links.
"""
from __future__ import annotations

import math
import sys
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set, Tuple
from urllib.parse import urlparse, urlunparse

import requests
from bs4 import BeautifulSoup, SoupStrainer

from sitegraph.errors import InvalidInput, RootUnreachable
from sitegraph.graph import SiteGraph, assemble
from sitegraph.hierarchy import reconcile
from sitegraph.registry import PageRegistry
from sitegraph.sitemap import discover_sitemap
from sitegraph.urls import ROOT_PATH, clean_path, depth_of, normalize_root, resolve_link, same_host

DEFAULT_MAX_PAGES = 80
MAX_DEPTH = 5
DEFAULT_TIMEOUT_S = 15.0
DEFAULT_USER_AGENT = "SiteGraphCrawler/1.0"

# SoupStrainer to parse only <a> tags (faster link extraction)
LINK_STRAINER = SoupStrainer("a", href=True)


@dataclass(slots=True)
class CrawlStats:
    """Statistics collected during crawl for summary output."""
    pages_crawled: int = 0
    sitemap_seeds: int = 0
    synthesized: int = 0
    pages_without_title: int = 0
    pages_without_h1: int = 0
    cancelled: bool = False
    error_counts: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_error(self, status_code: Optional[int]) -> None:
        """Record an error by status code category."""
        if status_code is None:
            self.error_counts["connection_error"] += 1
        else:
            self.error_counts[str(status_code)] += 1

    def record_page(self, title: Optional[str], h1: Optional[str]) -> None:
        """Record page metadata statistics."""
        if not title:
            self.pages_without_title += 1
        if not h1:
            self.pages_without_h1 += 1


@dataclass(slots=True)
class CrawlContext:
    """State owned by one crawl invocation, passed explicitly through the loop."""
    root_url: str
    host: str
    base_url: str
    depth_limit: int
    max_pages: int
    registry: PageRegistry
    stats: CrawlStats
    queue: Deque[str] = field(default_factory=deque)
    queued: Set[str] = field(default_factory=set)
    processed: Set[str] = field(default_factory=set)
    robots_disallow: Set[str] = field(default_factory=set)

    def enqueue(self, url: str, path: str) -> None:
        self.queue.append(url)
        self.queued.add(path)


def clamp_depth(depth: object) -> int:
    """Floor the requested depth and clamp it to [1, MAX_DEPTH]; junk becomes 1."""
    try:
        value = float(depth)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 1
    if math.isnan(value):
        return 1
    if math.isinf(value):
        return MAX_DEPTH if value > 0 else 1
    return min(max(1, math.floor(value)), MAX_DEPTH)


def extract_links(html: str) -> List[str]:
    """Extract all href values from <a> tags using optimized parsing."""
    soup = BeautifulSoup(html, "lxml", parse_only=LINK_STRAINER)
    return [a["href"] for a in soup if a.get("href")]


def parse_page(html: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Extract title, first H1 text and meta description from HTML."""
    soup = BeautifulSoup(html, "lxml")

    title = None
    if soup.title and soup.title.string:
        title = " ".join(soup.title.string.split()) or None

    h1 = None
    for tag in soup.find_all("h1"):
        if text := tag.get_text(separator=" ", strip=True):
            h1 = text
            break

    description = None
    meta = soup.find("meta", attrs={"name": lambda v: v and v.lower() == "description"})
    if meta and isinstance(meta.get("content"), str):
        description = meta["content"].strip() or None

    return title, h1, description


def print_progress(ctx: CrawlContext, current_url: str) -> None:
    """Print real-time progress to stderr."""
    progress = (
        f"\r\033[K[{ctx.stats.pages_crawled}/{ctx.max_pages}] Registered: {len(ctx.registry)}"
        f" | Queue: {len(ctx.queue)} | {current_url}"
    )
    sys.stderr.write(progress)
    sys.stderr.flush()


def print_scan_line(url: str, status: Optional[int], new_links: int) -> None:
    """Print single scan result line."""
    status_str = str(status) if status else "ERR"
    sys.stderr.write(f"\n  → {status_str} {url} (+{new_links} links)")
    sys.stderr.flush()


def crawl(
    domain: str,
    depth: int = 1,
    max_pages: int = DEFAULT_MAX_PAGES,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    user_agent: str = DEFAULT_USER_AGENT,
    respect_robots: bool = False,
    verbose: bool = False,
    session: Optional[requests.Session] = None,
    cancel: Optional[threading.Event] = None,
    time_limit_s: Optional[float] = None,
) -> Tuple[SiteGraph, CrawlStats]:
    """
    Crawl a domain into a connected, path-derived page hierarchy.

    Args:
        domain: Domain or URL to crawl; https:// is assumed without a scheme.
        depth: Maximum path depth, clamped to [1, MAX_DEPTH].
        max_pages: Page budget shared by sitemap seeds and discovered links.
        timeout_s: HTTP request timeout in seconds.
        user_agent: User-Agent header to use for requests.
        respect_robots: Whether to respect robots.txt Disallow rules.
        verbose: Whether to print progress information.
        session: Optional requests-style session (a new one is created otherwise).
        cancel: Event that stops the traversal once set.
        time_limit_s: Wall-clock limit after which the traversal stops.

    Returns:
        Tuple of (site graph, crawl statistics). A cancelled or timed-out
        crawl still returns the graph of everything registered so far.

    Raises:
        InvalidInput: The domain cannot be parsed into a URL.
        RootUnreachable: The root page failed on its first fetch.
    """
    root_url = normalize_root(domain)
    if max_pages < 1:
        raise InvalidInput(f"max_pages must be at least 1, got {max_pages}")

    hostname = urlparse(root_url).hostname or ""
    ctx = CrawlContext(
        root_url=root_url,
        host=hostname,
        base_url=root_url,
        depth_limit=clamp_depth(depth),
        max_pages=max_pages,
        registry=PageRegistry(),
        stats=CrawlStats(),
    )
    headers = {"User-Agent": user_agent}
    deadline = time.monotonic() + time_limit_s if time_limit_s is not None else None

    owns_session = session is None
    if session is None:
        session = requests.Session()

    try:
        if verbose:
            sys.stderr.write(f"Starting crawl from: {root_url}\n")
            sys.stderr.write(f"Depth limit: {ctx.depth_limit} | Max pages: {max_pages}\n")

        ctx.registry.upsert(ROOT_PATH, root_url)
        _seed_from_sitemap(session, ctx, timeout_s, headers)
        if verbose:
            sys.stderr.write(f"Sitemap seeds: {ctx.stats.sitemap_seeds}\n\n")

        if respect_robots:
            ctx.robots_disallow = _load_robots_rules(session, root_url, timeout_s, headers)

        ctx.enqueue(root_url, ROOT_PATH)
        while ctx.queue:
            # The root is always fetched; cancellation only cuts the rest short
            if ctx.processed and _should_stop(cancel, deadline):
                ctx.stats.cancelled = True
                if verbose:
                    sys.stderr.write("\n  ⊘ Crawl stopped early (cancelled or time limit)")
                break

            url = ctx.queue.popleft()
            path = clean_path(url)
            ctx.queued.discard(path)

            if depth_of(path) > ctx.depth_limit or path in ctx.processed:
                continue
            ctx.processed.add(path)

            if path != ROOT_PATH and _is_blocked_by_robots(urlparse(url).path or ROOT_PATH, ctx.robots_disallow):
                if verbose:
                    sys.stderr.write(f"\n  ⊘ ROBOTS {url}")
                ctx.registry.upsert(path, url, unreachable=True)
                continue

            if verbose:
                print_progress(ctx, url)
            status, new_links = _fetch_page(session, ctx, url, path, timeout_s, headers)
            if verbose:
                print_scan_line(url, status, new_links)
    finally:
        if owns_session:
            session.close()

    if verbose:
        sys.stderr.write("\n\n")

    ctx.stats.synthesized = len(reconcile(ctx.registry, ctx.base_url))
    return assemble(ctx.registry, hostname), ctx.stats


def _seed_from_sitemap(
    session: requests.Session,
    ctx: CrawlContext,
    timeout: float,
    headers: Dict[str, str],
) -> None:
    """Register sitemap URLs (metadata only) within the remaining budget."""
    seeds = discover_sitemap(
        session,
        ctx.root_url,
        budget=ctx.max_pages - len(ctx.registry),
        max_depth=ctx.depth_limit,
        timeout=timeout,
        headers=headers,
    )
    for url in seeds:
        path = clean_path(url)
        if path in ctx.registry:
            continue
        if len(ctx.registry) >= ctx.max_pages:
            break
        ctx.registry.upsert(path, url)
        ctx.stats.sitemap_seeds += 1


def _fetch_page(
    session: requests.Session,
    ctx: CrawlContext,
    url: str,
    path: str,
    timeout: float,
    headers: Dict[str, str],
) -> Tuple[Optional[int], int]:
    """
    Fetch one page, record it and enqueue its new same-host links.

    Returns (status code, number of links enqueued). Failures are recorded
    as unreachable entries, except for the root which raises RootUnreachable.
    """
    is_root = path == ROOT_PATH
    ctx.stats.pages_crawled += 1

    try:
        resp = session.get(url, headers=headers, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        ctx.stats.record_error(None)
        if is_root:
            raise RootUnreachable(url, reason=str(e)) from e
        ctx.registry.upsert(path, url, unreachable=True)
        return None, 0

    status = resp.status_code
    if not 200 <= status < 300:
        ctx.stats.record_error(status)
        if is_root:
            raise RootUnreachable(url, status_code=status)
        ctx.registry.upsert(path, url, status_code=status, unreachable=True)
        return status, 0

    final_url = resp.url or url
    final_host = urlparse(final_url).hostname or ""
    if is_root and final_host and not same_host(final_host, ctx.host):
        # Root redirected to another host: that host is the site from now on
        ctx.host = final_host
        ctx.base_url = normalize_root(final_url)

    content_type = (resp.headers.get("content-type") or "").lower()
    if "text/html" not in content_type:
        ctx.registry.upsert(path, url, status_code=status, unreachable=False)
        ctx.stats.record_page(None, None)
        return status, 0

    html = resp.text
    title, h1, description = parse_page(html)
    ctx.registry.upsert(
        path,
        url,
        title=title,
        status_code=status,
        unreachable=False,
        h1=h1,
        meta_description=description,
    )
    ctx.stats.record_page(title, h1)

    # A page that redirected off-site is recorded but its links are not ours
    if not same_host(final_host, ctx.host):
        return status, 0

    new_links = 0
    for href in extract_links(html):
        target = resolve_link(final_url, href)
        if not target or not same_host(target, ctx.host):
            continue

        target_path = clean_path(target)
        if depth_of(target_path) > ctx.depth_limit:
            continue
        if target_path in ctx.processed or target_path in ctx.queued:
            continue

        if target_path not in ctx.registry:
            if len(ctx.registry) >= ctx.max_pages:
                continue
            ctx.registry.upsert(target_path, target)

        ctx.enqueue(target, target_path)
        new_links += 1

    return status, new_links


def _should_stop(cancel: Optional[threading.Event], deadline: Optional[float]) -> bool:
    if cancel is not None and cancel.is_set():
        return True
    return deadline is not None and time.monotonic() >= deadline


def _load_robots_rules(
    session: requests.Session,
    root_url: str,
    timeout: float,
    headers: Dict[str, str],
) -> Set[str]:
    """Load disallow rules from robots.txt."""
    disallow_rules: Set[str] = set()
    parsed = urlparse(root_url)
    try:
        robots_url = urlunparse((parsed.scheme, parsed.netloc, "/robots.txt", "", "", ""))
        resp = session.get(robots_url, headers=headers, timeout=timeout, allow_redirects=True)

        if resp.status_code != 200:
            return disallow_rules
        if "text" not in (resp.headers.get("content-type") or "").lower():
            return disallow_rules

        ua_star = False
        for line in resp.text.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            lower_line = line.lower()
            if lower_line.startswith("user-agent:"):
                ua_star = line.split(":", 1)[1].strip() == "*"
            elif ua_star and lower_line.startswith("disallow:"):
                path = line.split(":", 1)[1].strip()
                if path:
                    disallow_rules.add(path)
    except requests.RequestException:
        pass  # Proceed without robots.txt on error

    return disallow_rules


def _is_blocked_by_robots(path: str, disallow_rules: Set[str]) -> bool:
    """Check if a path matches any disallow rule."""
    if not disallow_rules:
        return False
    return any(path.startswith(rule) for rule in disallow_rules)
