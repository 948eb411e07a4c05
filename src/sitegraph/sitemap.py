"""
Best-effort sitemap discovery. Never fails the crawl.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup, ParserRejectedMarkup

from sitegraph.urls import ROOT_PATH, clean_path, depth_of, resolve_link, same_host

# Tried in order; the first one yielding <loc> entries wins.
SITEMAP_CANDIDATES: Tuple[str, ...] = ("/sitemap.xml", "/sitemap_index.xml")

# Child sitemaps followed from a <sitemapindex> (one level only).
MAX_CHILD_SITEMAPS = 10


def parse_sitemap(body: str | bytes) -> Tuple[List[str], bool]:
    """Extract <loc> values. Returns (locations, is_sitemap_index)."""
    soup = BeautifulSoup(body, "xml")
    is_index = soup.find("sitemapindex") is not None
    locations = [text for loc in soup.find_all("loc") if (text := loc.get_text(strip=True))]
    return locations, is_index


def _fetch_sitemap(
    session: requests.Session,
    url: str,
    timeout: float,
    headers: Optional[Dict[str, str]],
) -> Optional[Tuple[List[str], bool, str]]:
    """Fetch and parse one sitemap; None on any failure or an empty document."""
    try:
        resp = session.get(url, headers=headers, timeout=timeout, allow_redirects=True)
    except requests.RequestException:
        return None
    if not 200 <= resp.status_code < 300:
        return None
    try:
        locations, is_index = parse_sitemap(resp.content)
    except ParserRejectedMarkup:
        return None
    if not locations:
        return None
    return locations, is_index, resp.url or url


def _select_seeds(
    locations: List[str],
    root_url: str,
    hosts: Tuple[str, ...],
    budget: int,
    max_depth: Optional[int],
    seeds: List[str],
    seen: Set[str],
) -> None:
    """Append same-host, in-depth, not-yet-seen locations to ``seeds`` up to ``budget``."""
    for loc in locations:
        if len(seeds) >= budget:
            return
        url = resolve_link(root_url, loc)
        if not url or not any(same_host(url, host) for host in hosts):
            continue
        path = clean_path(url)
        if path == ROOT_PATH or path in seen:
            continue
        if max_depth is not None and depth_of(path) > max_depth:
            continue
        seen.add(path)
        seeds.append(url)


def discover_sitemap(
    session: requests.Session,
    root_url: str,
    budget: int,
    max_depth: Optional[int] = None,
    timeout: float = 15.0,
    headers: Optional[Dict[str, str]] = None,
) -> List[str]:
    """
    Collect seed URLs from the site's sitemap.

    Args:
        session: HTTP session used for the sitemap requests.
        root_url: Normalized root URL of the site.
        budget: Maximum number of seeds to return.
        max_depth: Drop entries whose path is deeper than this.
        timeout: HTTP request timeout in seconds.
        headers: Extra request headers (User-Agent).

    Returns:
        Ordered, path-deduplicated seed URLs; empty when no sitemap is usable.
    """
    if budget <= 0:
        return []

    for candidate in SITEMAP_CANDIDATES:
        fetched = _fetch_sitemap(session, urljoin(root_url, candidate), timeout, headers)
        if fetched is None:
            continue

        locations, is_index, final_url = fetched
        # A redirected sitemap may list pages on the host it redirected to
        hosts = (root_url, urlparse(final_url).hostname or root_url)
        seeds: List[str] = []
        seen: Set[str] = set()

        if is_index:
            children = [loc for loc in locations if any(same_host(loc, host) for host in hosts)]
            for child_url in children[:MAX_CHILD_SITEMAPS]:
                if len(seeds) >= budget:
                    break
                child = _fetch_sitemap(session, child_url, timeout, headers)
                if child is None or child[1]:
                    continue
                _select_seeds(child[0], root_url, hosts, budget, max_depth, seeds, seen)
        else:
            _select_seeds(locations, root_url, hosts, budget, max_depth, seeds, seen)

        return seeds

    return []
