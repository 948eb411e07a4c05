"""
Turn a reconciled page registry into a node/edge graph.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from sitegraph.registry import PageEntry, PageRegistry
from sitegraph.urls import ROOT_PATH, depth_of, last_segment, parent_of

ROOT_NODE_ID = "root"
LABEL_MAX_LENGTH = 28
ELLIPSIS = "…"

# Placeholder child emitted when nothing but the root was found. Its path
# carries a fragment, which discovered paths never do.
EMPTY_NODE_ID = "node-empty"
EMPTY_NODE_PATH = "/#no-links"
EMPTY_NODE_LABEL = "No links found"


@dataclass(frozen=True, slots=True)
class Node:
    """One page of the site graph."""
    id: str
    label: str
    path: str
    is_root: bool
    depth: int
    status_code: Optional[int] = None
    unreachable: Optional[bool] = None
    title: Optional[str] = None
    h1: Optional[str] = None
    meta_description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "path": self.path,
            "isRoot": self.is_root,
            "depth": self.depth,
        }
        optional = (
            ("statusCode", self.status_code),
            ("unreachable", self.unreachable),
            ("title", self.title),
            ("h1", self.h1),
            ("metaDescription", self.meta_description),
        )
        data.update((key, value) for key, value in optional if value is not None)
        return data


@dataclass(frozen=True, slots=True)
class Edge:
    """Syntactic parent -> child relationship."""
    id: str
    source: str
    target: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "source": self.source, "target": self.target}


@dataclass(frozen=True, slots=True)
class SiteGraph:
    """Immutable crawl result handed to rendering and persistence."""
    domain: str
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]

    def node_by_path(self, path: str) -> Optional[Node]:
        return next((node for node in self.nodes if node.path == path), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


def make_node_id(path: str) -> str:
    """Stable id for a path: "root" for "/", otherwise "node-" plus the escaped path."""
    if path == ROOT_PATH:
        return ROOT_NODE_ID
    # quote() escapes "%" too, so distinct paths never collide
    return f"node-{quote(path, safe='/-_.~')}"


def make_edge_id(source: str, target: str) -> str:
    return f"e-{source}-{target}"


def truncate_label(text: str, max_length: int = LABEL_MAX_LENGTH) -> str:
    return f"{text[:max_length]}{ELLIPSIS}" if len(text) > max_length else text


def make_label(entry: PageEntry, hostname: str) -> str:
    """Display label: fetched title, then last path segment, then hostname."""
    text = (entry.title or "").strip() or last_segment(entry.path) or hostname or "Page"
    return truncate_label(text)


def _to_node(entry: PageEntry, hostname: str) -> Node:
    return Node(
        id=make_node_id(entry.path),
        label=make_label(entry, hostname),
        path=entry.path,
        is_root=entry.path == ROOT_PATH,
        depth=depth_of(entry.path),
        status_code=entry.status_code,
        unreachable=entry.unreachable,
        title=entry.title,
        h1=entry.h1,
        meta_description=entry.meta_description,
    )


def assemble(registry: PageRegistry, hostname: str) -> SiteGraph:
    """
    Build the graph from a reconciled registry.

    Nodes are ordered root first, then by depth and path. Every non-root
    node gets exactly one inbound edge from the node at parent_of(path);
    pairs whose parent is missing are left out, which cannot happen after
    reconcile(). A registry holding only the root yields the root plus a
    single "no links found" child.
    """
    entries = sorted(registry, key=lambda e: (depth_of(e.path), e.path))
    nodes: List[Node] = [_to_node(entry, hostname) for entry in entries]

    edges: List[Edge] = []
    for entry in entries:
        parent = parent_of(entry.path)
        if parent is None or parent not in registry:
            continue
        source, target = make_node_id(parent), make_node_id(entry.path)
        edges.append(Edge(id=make_edge_id(source, target), source=source, target=target))

    if len(nodes) == 1 and nodes[0].is_root:
        nodes.append(Node(
            id=EMPTY_NODE_ID,
            label=EMPTY_NODE_LABEL,
            path=EMPTY_NODE_PATH,
            is_root=False,
            depth=1,
        ))
        edges.append(Edge(
            id=make_edge_id(ROOT_NODE_ID, EMPTY_NODE_ID),
            source=ROOT_NODE_ID,
            target=EMPTY_NODE_ID,
        ))

    return SiteGraph(domain=hostname, nodes=tuple(nodes), edges=tuple(edges))
