"""
Bounded website crawler that turns a domain into a connected page hierarchy.
Combines sitemap seeding with same-host BFS and returns a node/edge graph.
"""
from sitegraph.core import crawl, CrawlStats
from sitegraph.errors import CrawlError, InvalidInput, RootUnreachable
from sitegraph.graph import Edge, Node, SiteGraph

__version__ = "1.0.0"
__all__ = [
    "crawl",
    "CrawlStats",
    "CrawlError",
    "InvalidInput",
    "RootUnreachable",
    "Edge",
    "Node",
    "SiteGraph",
]
