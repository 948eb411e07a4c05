import threading

import pytest
from conftest import ROOT, FakeResponse, FakeSession, html, urlset

from sitegraph.core import clamp_depth, crawl, parse_page
from sitegraph.errors import InvalidInput, RootUnreachable
from sitegraph.graph import EMPTY_NODE_ID
from sitegraph.hierarchy import reconcile
from sitegraph.urls import parent_of


def _edges(graph):
    return {(e.source, e.target) for e in graph.edges}


def assert_connected_tree(graph):
    by_path = {n.path: n for n in graph.nodes}
    assert len(by_path) == len(graph.nodes)
    assert len({n.id for n in graph.nodes}) == len(graph.nodes)

    roots = [n for n in graph.nodes if n.is_root]
    assert len(roots) == 1 and roots[0].depth == 0 and roots[0].path == "/"

    for node in graph.nodes:
        if node.is_root:
            continue
        inbound = [e for e in graph.edges if e.target == node.id]
        assert len(inbound) == 1
        assert inbound[0].source == by_path[parent_of(node.path)].id


def test_homepage_links_become_children():
    session = FakeSession({
        ROOT: html("Home", links=("/about", "contact", "#top", "mailto:hi@example.com")),
        "https://example.com/about": html("About"),
        "https://example.com/contact": html("Contact"),
    })
    graph, stats = crawl("example.com", depth=1, session=session)

    assert [n.id for n in graph.nodes] == ["root", "node-/about", "node-/contact"]
    assert _edges(graph) == {("root", "node-/about"), ("root", "node-/contact")}
    assert graph.domain == "example.com"
    assert graph.node_by_path("/about").label == "About"
    assert graph.node_by_path("/").label == "Home"
    assert stats.pages_crawled == 3
    assert_connected_tree(graph)


def test_sitemap_only_page_gets_synthesized_ancestors():
    session = FakeSession({
        "https://example.com/sitemap.xml": urlset("https://example.com/a/b/c"),
        ROOT: html("Home"),
    })
    graph, stats = crawl("example.com", depth=3, session=session)

    for path in ("/a", "/a/b"):
        node = graph.node_by_path(path)
        assert node.unreachable is True
        assert node.status_code is None
    assert graph.node_by_path("/a/b/c") is not None
    assert {("root", "node-/a"), ("node-/a", "node-/a/b"), ("node-/a/b", "node-/a/b/c")} <= _edges(graph)
    assert stats.sitemap_seeds == 1
    assert stats.synthesized == 2
    assert_connected_tree(graph)


def test_root_404_is_fatal():
    session = FakeSession({ROOT: FakeResponse(404, text="missing")})
    with pytest.raises(RootUnreachable) as excinfo:
        crawl("example.com", session=session)
    assert excinfo.value.status_code == 404
    assert "404" in str(excinfo.value)


def test_root_network_error_is_fatal(connection_error):
    session = FakeSession({ROOT: connection_error})
    with pytest.raises(RootUnreachable) as excinfo:
        crawl("example.com", session=session)
    assert excinfo.value.status_code is None
    assert "connection refused" in str(excinfo.value)


def test_links_beyond_depth_are_never_fetched():
    session = FakeSession({
        ROOT: html("Home", links=("/a",)),
        "https://example.com/a": html("A", links=("/a/b",)),
        "https://example.com/a/b": html("B", links=("/a/b/c",)),
        "https://example.com/a/b/c": html("C"),
    })
    graph, _ = crawl("example.com", depth=2, session=session)

    assert "https://example.com/a/b" in session.requests
    assert "https://example.com/a/b/c" not in session.requests
    assert graph.node_by_path("/a/b/c") is None
    assert all(n.depth <= 2 for n in graph.nodes)


def test_site_without_links_gets_placeholder():
    session = FakeSession({ROOT: html("Lonely")})
    graph, _ = crawl("example.com", depth=1, session=session)

    assert [n.id for n in graph.nodes] == ["root", EMPTY_NODE_ID]
    assert _edges(graph) == {("root", EMPTY_NODE_ID)}


def test_failed_page_is_recorded_and_not_followed(connection_error):
    session = FakeSession({
        ROOT: html("Home", links=("/broken", "/down", "/ok")),
        "https://example.com/broken": FakeResponse(500, text="<a href='/hidden'>x</a>"),
        "https://example.com/down": connection_error,
        "https://example.com/ok": html("OK"),
    })
    graph, stats = crawl("example.com", depth=2, session=session)

    broken = graph.node_by_path("/broken")
    assert broken.unreachable is True and broken.status_code == 500
    down = graph.node_by_path("/down")
    assert down.unreachable is True and down.status_code is None
    assert graph.node_by_path("/ok").unreachable is False
    assert graph.node_by_path("/hidden") is None
    assert stats.error_counts == {"500": 1, "connection_error": 1}


def test_pages_are_fetched_once():
    session = FakeSession({
        ROOT: html("Home", links=("/a", "/b", "/a/")),
        "https://example.com/a": html("A", links=("/b", "/", "/a")),
        "https://example.com/b": html("B", links=("/a",)),
    })
    crawl("example.com", depth=1, session=session)

    pages = [u for u in session.requests if not u.endswith(".xml")]
    assert sorted(pages) == [ROOT, "https://example.com/a", "https://example.com/b"]


def test_page_budget_is_shared_with_sitemap():
    links = tuple(f"/p{i}" for i in range(10))
    pages = {ROOT: html("Home", links=links)}
    pages.update({f"https://example.com{link}": html(link) for link in links})
    pages["https://example.com/sitemap.xml"] = urlset("https://example.com/from-sitemap")
    session = FakeSession(pages)

    graph, stats = crawl("example.com", depth=1, max_pages=4, session=session)

    assert len(graph.nodes) == 4
    assert graph.node_by_path("/from-sitemap") is not None
    assert [n.path for n in graph.nodes if n.path.startswith("/p")] == ["/p0", "/p1"]
    assert stats.sitemap_seeds == 1


def test_sitemap_seed_is_enriched_when_linked():
    session = FakeSession({
        "https://example.com/sitemap.xml": urlset("https://example.com/about", "https://example.com/team"),
        ROOT: html("Home", links=("/about",)),
        "https://example.com/about": html("About us"),
    })
    graph, _ = crawl("example.com", depth=1, session=session)

    about = graph.node_by_path("/about")
    assert about.title == "About us" and about.status_code == 200
    team = graph.node_by_path("/team")
    assert team.unreachable is None and team.status_code is None
    assert "https://example.com/team" not in session.requests


def test_root_redirect_adopts_new_host():
    session = FakeSession({
        ROOT: FakeResponse(200, url="https://example.org/", text=html("Moved", links=("/x", "https://example.com/y")).text),
        "https://example.org/x": html("X"),
    })
    graph, _ = crawl("example.com", depth=1, session=session)

    assert graph.node_by_path("/x").title == "X"
    assert graph.node_by_path("/y") is None
    assert graph.domain == "example.com"


def test_www_variant_counts_as_same_host():
    session = FakeSession({
        ROOT: html("Home", links=("https://www.example.com/news", "https://blog.example.com/post")),
        "https://www.example.com/news": html("News"),
    })
    graph, _ = crawl("example.com", depth=1, session=session)

    assert graph.node_by_path("/news").title == "News"
    assert graph.node_by_path("/post") is None


def test_non_html_page_is_a_reachable_leaf():
    session = FakeSession({
        ROOT: html("Home", links=("/feed",)),
        "https://example.com/feed": FakeResponse(200, text="<a href='/secret'>x</a>", content_type="application/json"),
    })
    graph, _ = crawl("example.com", depth=2, session=session)

    assert graph.node_by_path("/feed").unreachable is False
    assert graph.node_by_path("/secret") is None


def test_robots_disallowed_pages_are_not_fetched():
    session = FakeSession({
        "https://example.com/robots.txt": FakeResponse(
            200, text="User-agent: *\nDisallow: /private\nDisallow: /members/\n", content_type="text/plain"),
        ROOT: html("Home", links=("/private/area", "/public", "/members/")),
        "https://example.com/public": html("Public"),
    })
    graph, _ = crawl("example.com", depth=2, respect_robots=True, session=session)

    assert "https://example.com/private/area" not in session.requests
    assert "https://example.com/members/" not in session.requests
    assert graph.node_by_path("/members").unreachable is True
    assert graph.node_by_path("/private/area").unreachable is True
    assert graph.node_by_path("/public").unreachable is False


def test_cancelled_crawl_returns_partial_graph():
    cancel = threading.Event()
    cancel.set()
    session = FakeSession({
        ROOT: html("Home", links=("/a", "/b")),
        "https://example.com/a": html("A"),
    })
    graph, stats = crawl("example.com", depth=1, session=session, cancel=cancel)

    assert stats.cancelled is True
    assert "https://example.com/a" not in session.requests
    assert {n.path for n in graph.nodes} == {"/", "/a", "/b"}
    assert_connected_tree(graph)


def test_page_metadata_is_recorded():
    session = FakeSession({
        ROOT: FakeResponse(200, text=(
            "<html><head><title>\n  Home   page </title>"
            '<meta name="Description" content=" Welcome! "></head>'
            "<body><h1></h1><h1>Hello <b>world</b></h1></body></html>"
        )),
    })
    graph, _ = crawl("example.com", session=session)

    root = graph.node_by_path("/")
    assert root.title == "Home page"
    assert root.h1 == "Hello world"
    assert root.meta_description == "Welcome!"


def test_session_is_closed_only_when_owned(monkeypatch):
    from sitegraph import core

    owned = FakeSession({ROOT: html("Home")})
    monkeypatch.setattr(core.requests, "Session", lambda: owned)
    crawl("example.com")
    assert owned.closed is True

    injected = FakeSession({ROOT: html("Home")})
    crawl("example.com", session=injected)
    assert injected.closed is False


def test_deep_site_stays_connected():
    session = FakeSession({
        "https://example.com/sitemap.xml": urlset(
            "https://example.com/docs/guide/install",
            "https://example.com/blog/2024/05/launch",
        ),
        ROOT: html("Home", links=("/docs", "/shop/items/42")),
        "https://example.com/docs": html("Docs", links=("/docs/api/v1",)),
        "https://example.com/shop/items/42": html("Item"),
        "https://example.com/docs/api/v1": html("API v1"),
    })
    graph, _ = crawl("example.com", depth=4, session=session)

    assert_connected_tree(graph)
    assert graph.node_by_path("/blog/2024").unreachable is True
    assert graph.node_by_path("/shop").unreachable is True


def test_invalid_domain_is_rejected():
    with pytest.raises(InvalidInput):
        crawl("   ", session=FakeSession())
    with pytest.raises(InvalidInput):
        crawl("example.com", max_pages=0, session=FakeSession())


@pytest.mark.parametrize("value, expected", [(0, 1), (-3, 1), (1, 1), (2.9, 2), (5, 5), (9, 5), ("3", 3), ("x", 1), (None, 1),
                                          (float("inf"), 5), (float("-inf"), 1), (float("nan"), 1)])
def test_clamp_depth(value, expected):
    assert clamp_depth(value) == expected


def test_parse_page_handles_missing_metadata():
    assert parse_page("<html><body>plain</body></html>") == (None, None, None)


def test_sitemap_and_link_spellings_share_one_node():
    session = FakeSession({
        "https://example.com/sitemap.xml": urlset("https://example.com/%C3%BCber", "https://example.com/x/../team"),
        ROOT: html("Home", links=("/über", "/team/")),
        "https://example.com/%C3%BCber": html("Über uns"),
        "https://example.com/team/": html("Team"),
    })
    graph, _ = crawl("example.com", depth=3, session=session)

    assert [n.path for n in graph.nodes] == ["/", "/%C3%BCber", "/team"]
    assert graph.node_by_path("/%C3%BCber").label == "Über uns"
    assert graph.node_by_path("/team").title == "Team"
    assert_connected_tree(graph)


def test_synthesized_ancestors_use_redirected_host(monkeypatch):
    from sitegraph import core

    registries = []

    def recording_reconcile(registry, root_url):
        registries.append(registry)
        return reconcile(registry, root_url)

    session = FakeSession({
        ROOT: FakeResponse(200, url="https://example.org/", text=html("Moved", links=("/a/b",)).text),
        "https://example.org/a/b": html("B"),
    })
    monkeypatch.setattr(core, "reconcile", recording_reconcile)
    graph, _ = crawl("example.com", depth=2, session=session)

    assert graph.node_by_path("/a").unreachable is True
    assert registries[0].get("/a").url == "https://example.org/a"
    assert registries[0].get("/a/b").url == "https://example.org/a/b"
