"""
Close gaps in the path hierarchy so the graph is a connected rooted tree.
"""
from __future__ import annotations

from typing import List
from urllib.parse import urlparse

from sitegraph.registry import PageRegistry
from sitegraph.urls import ROOT_PATH, last_segment, parent_of, url_for_path


def reconcile(registry: PageRegistry, root_url: str) -> List[str]:
    """
    Synthesize placeholder entries for every missing ancestor path.

    A page can be discovered (via the sitemap, or a link from elsewhere)
    without its syntactic parent ever being seen. Each missing ancestor is
    registered as unreachable, titled after its last segment (or the
    hostname for the root), with no status code.

    Returns the synthesized paths, in the order they were created.
    """
    hostname = urlparse(root_url).hostname or ""
    synthesized: List[str] = []

    if ROOT_PATH not in registry:
        registry.upsert(ROOT_PATH, root_url, title=hostname, unreachable=True)
        synthesized.append(ROOT_PATH)

    for path in registry.paths():
        parent = parent_of(path)
        while parent is not None and parent not in registry:
            registry.upsert(
                parent,
                url_for_path(root_url, parent),
                title=last_segment(parent) or hostname,
                unreachable=True,
            )
            synthesized.append(parent)
            parent = parent_of(parent)

    return synthesized
