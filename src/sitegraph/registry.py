"""
Page registry: one merge-only entry per normalized path.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Dict, Iterator, List, Optional


@dataclass(slots=True)
class PageEntry:
    """Metadata for a single discovered or synthesized page.

    ``unreachable`` is None while the page has not been fetched, False after
    a successful fetch and True after a failed fetch (or for a placeholder).
    """
    path: str
    url: str
    title: Optional[str] = None
    status_code: Optional[int] = None
    unreachable: Optional[bool] = None
    h1: Optional[str] = None
    meta_description: Optional[str] = None


# Fields that upsert() may fill in; "path" is the key and never changes.
MERGE_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(PageEntry) if f.name != "path")


class PageRegistry:
    """
    Accumulating map of path -> PageEntry shared by sitemap seeding,
    link traversal and reconciliation within one crawl.

    Merges only add information: a field that already holds a value is
    never overwritten, so the first successful fetch wins and a bare
    sitemap mention cannot downgrade a fetched page.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, PageEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __iter__(self) -> Iterator[PageEntry]:
        return iter(list(self._entries.values()))

    def get(self, path: str) -> Optional[PageEntry]:
        return self._entries.get(path)

    def paths(self) -> List[str]:
        """Registered paths in insertion order."""
        return list(self._entries)

    def upsert(self, path: str, url: str, **partial: object) -> PageEntry:
        """Register ``path`` or fill in whatever fields it is still missing."""
        unknown = set(partial) - set(MERGE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown page fields: {', '.join(sorted(unknown))}")

        entry = self._entries.get(path)
        if entry is None:
            entry = PageEntry(path=path, url=url)
            self._entries[path] = entry
        elif not entry.url:
            entry.url = url

        for name, value in partial.items():
            if value is not None and getattr(entry, name) is None:
                setattr(entry, name, value)
        return entry
