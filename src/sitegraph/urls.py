"""
URL normalization and path arithmetic shared by sitemap and link discovery.
"""
from __future__ import annotations

from typing import List, Optional
from urllib.parse import quote, unquote, urldefrag, urljoin, urlparse, urlunparse

from sitegraph.errors import InvalidInput

ROOT_PATH = "/"

# Pre-defined file extensions to skip (frozen set for O(1) lookup)
SKIP_EXTENSIONS: frozenset[str] = frozenset((
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
    ".pdf", ".zip", ".rar", ".7z",
    ".mp4", ".mp3", ".wav", ".webm",
    ".css", ".js", ".map", ".ico",
    ".woff", ".woff2", ".ttf", ".eot",
))

SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")

_BAD_HOST_CHARS = frozenset('<>"{}|\\^`')

# Characters left as-is when re-encoding a path (RFC 3986 pchar plus "/")
PATH_SAFE_CHARS = "/:@!$&'()*+,;=-._~"


def _netloc(scheme: str, hostname: str, port: Optional[int]) -> str:
    """Build a netloc, dropping default ports (:80, :443)."""
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is None or (scheme == "http" and port == 80) or (scheme == "https" and port == 443):
        return host
    return f"{host}:{port}"


def normalize_root(value: str) -> str:
    """
    Canonicalize a domain or URL into a root URL.

    - Prefixes https:// when no scheme is given
    - Lowercases scheme and host, drops default ports
    - Clears path, query and fragment (path becomes "/")

    Raises InvalidInput if no crawlable URL can be built.
    """
    trimmed = (value or "").strip()
    if not trimmed:
        raise InvalidInput("Domain must not be empty")
    if "://" not in trimmed:
        trimmed = f"https://{trimmed}"

    try:
        parsed = urlparse(trimmed)
        port = parsed.port
    except ValueError as e:
        raise InvalidInput(f"Invalid domain: {value!r}") from e

    scheme = parsed.scheme.lower()
    if scheme not in ("http", "https"):
        raise InvalidInput(f"Unsupported scheme in {value!r}")

    hostname = (parsed.hostname or "").lower()
    if not hostname or any(ch.isspace() or ch in _BAD_HOST_CHARS for ch in hostname):
        raise InvalidInput(f"Invalid domain: {value!r}")

    return urlunparse((scheme, _netloc(scheme, hostname, port), ROOT_PATH, "", "", ""))


def resolve_link(base: str, href: Optional[str]) -> Optional[str]:
    """
    Resolve an href against the page it was found on.

    Returns None for anything that should be skipped: empty and fragment-only
    hrefs, non-page schemes, asset files, or URLs that fail to parse. The
    result has no query or fragment and always uses the base URL's scheme.
    """
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith("#"):
        return None
    if href.lower().startswith(SKIP_SCHEMES):
        return None

    try:
        joined, _ = urldefrag(urljoin(base, href))
        parsed = urlparse(joined)
        port = parsed.port
    except ValueError:
        return None

    if parsed.scheme.lower() not in ("http", "https"):
        return None
    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return None

    path_lower = (parsed.path or "").lower()
    if any(path_lower.endswith(ext) for ext in SKIP_EXTENSIONS):
        return None

    # Default ports are judged against the link's own scheme before it is replaced
    if (parsed.scheme == "http" and port == 80) or (parsed.scheme == "https" and port == 443):
        port = None
    scheme = urlparse(base).scheme.lower() or "https"
    return urlunparse((scheme, _netloc(scheme, hostname, port), canonical_path(parsed.path), "", "", ""))


def canonical_path(path: str) -> str:
    """
    Resolve "." and ".." segments and re-encode a URL path.

    Decoding first and encoding everything outside PATH_SAFE_CHARS makes
    "/über", "/%C3%BCber" and "/%c3%bcber" the same path, as are " " and "%20".
    """
    segments = (path or "").split("/")
    if segments[0] == "":
        segments = segments[1:]

    resolved: List[str] = []
    for segment in segments:
        if segment == "..":
            if resolved:
                resolved.pop()
        elif segment != ".":
            resolved.append(segment)
    if segments and segments[-1] in (".", ".."):
        resolved.append("")
    return quote(unquote(ROOT_PATH + "/".join(resolved)), safe=PATH_SAFE_CHARS)


def host_key(value: str) -> str:
    """Hostname of a URL (or a bare hostname) without a leading "www."."""
    host = value or ""
    if "://" in host:
        try:
            host = urlparse(host).hostname or ""
        except ValueError:
            return ""
    host = host.strip().lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def same_host(a: str, b: str) -> bool:
    """Compare two hosts, ignoring case and one leading "www." label on each."""
    key = host_key(a)
    return bool(key) and key == host_key(b)


def _segments(path: str) -> List[str]:
    return [segment for segment in (path or "").split("/") if segment]


def clean_path(url: str) -> str:
    """Path of a URL without trailing (or repeated) slashes; "/" for the root."""
    return ROOT_PATH + "/".join(_segments(canonical_path(urlparse(url).path)))


def depth_of(path: str) -> int:
    """Number of non-empty path segments. The root has depth 0."""
    return len(_segments(path))


def parent_of(path: str) -> Optional[str]:
    """Syntactic parent: the path minus its last segment, None for the root."""
    segments = _segments(path)
    if not segments:
        return None
    return ROOT_PATH + "/".join(segments[:-1])


def last_segment(path: str) -> str:
    """Decoded final path segment, or "" for the root."""
    segments = _segments(path)
    return unquote(segments[-1]) if segments else ""


def url_for_path(root_url: str, path: str) -> str:
    """Absolute URL for a path on the root's host."""
    return urljoin(root_url, path)
