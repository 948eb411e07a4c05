from typing import Dict, List, Optional, Union

import pytest
import requests

ROOT = "https://example.com/"


class FakeResponse:
    def __init__(self, status_code=200, url="", text="", content_type="text/html; charset=utf-8"):
        self.status_code = status_code
        self.url = url
        self.text = text
        self.content = text.encode("utf-8")
        self.headers = {"content-type": content_type} if content_type else {}


class FakeSession:
    """Serves canned responses by URL; anything unknown is a 404."""

    def __init__(self, pages: Optional[Dict[str, Union[FakeResponse, Exception]]] = None):
        self.pages = pages or {}
        self.requests: List[str] = []
        self.closed = False

    def get(self, url, headers=None, timeout=None, allow_redirects=None):
        self.requests.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return FakeResponse(404, url, "not found")
        if not page.url:
            page.url = url
        return page

    def close(self):
        self.closed = True


def html(title: Optional[str] = None, links: tuple = (), body: str = "") -> FakeResponse:
    head = f"<title>{title}</title>" if title is not None else ""
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return FakeResponse(200, text=f"<html><head>{head}</head><body>{body}{anchors}</body></html>")


def urlset(*locs: str) -> FakeResponse:
    entries = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return FakeResponse(
        200,
        text=(
            '<?xml version="1.0" encoding="UTF-8"?>'
            f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'
        ),
        content_type="application/xml",
    )


def sitemapindex(*locs: str) -> FakeResponse:
    entries = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locs)
    return FakeResponse(
        200,
        text=(
            '<?xml version="1.0" encoding="UTF-8"?>'
            f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</sitemapindex>'
        ),
        content_type="application/xml",
    )


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")
