"""Tests for the session exposure registry."""

from __future__ import annotations

import threading

import pytest

from pageaudit.errors import SessionNotFound
from pageaudit.shared.sessions import SessionRegistry


class TestSessionRegistry:
    def test_publish_resolve_revoke(self, registry: SessionRegistry) -> None:
        sid = registry.publish("<p>hello</p>")
        assert sid in registry
        assert registry.resolve(sid) == "<p>hello</p>"

        registry.revoke(sid)
        assert sid not in registry
        with pytest.raises(SessionNotFound):
            registry.resolve(sid)

    def test_unknown_session(self, registry: SessionRegistry) -> None:
        with pytest.raises(SessionNotFound, match="nope"):
            registry.resolve("nope")

    def test_revoke_is_idempotent(self, registry: SessionRegistry) -> None:
        sid = registry.publish("x")
        registry.revoke(sid)
        registry.revoke(sid)
        registry.revoke("never-existed")
        assert len(registry) == 0

    def test_ids_are_unique(self, registry: SessionRegistry) -> None:
        ids = {registry.publish("same html") for _ in range(500)}
        assert len(ids) == 500

    def test_exposed_revokes_on_success(self, registry: SessionRegistry) -> None:
        with registry.exposed("<html></html>") as sid:
            assert registry.resolve(sid) == "<html></html>"
        assert len(registry) == 0

    def test_exposed_revokes_on_error(self, registry: SessionRegistry) -> None:
        with pytest.raises(RuntimeError):
            with registry.exposed("<html></html>"):
                raise RuntimeError("audit blew up")
        assert len(registry) == 0

    def test_revoke_leaves_other_sessions(self, registry: SessionRegistry) -> None:
        a = registry.publish("a")
        b = registry.publish("b")
        registry.revoke(a)
        assert registry.resolve(b) == "b"

    def test_url_for(self) -> None:
        url = SessionRegistry.url_for("http://127.0.0.1:4000/", "abc")
        assert url == "http://127.0.0.1:4000/__session-exposure/abc"

    def test_concurrent_publish_from_threads(self, registry: SessionRegistry) -> None:
        published: dict[str, str] = {}
        lock = threading.Lock()

        def worker(n: int) -> None:
            for i in range(100):
                html = f"<p>{n}-{i}</p>"
                sid = registry.publish(html)
                with lock:
                    published[sid] = html

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(published) == 800
        assert all(registry.resolve(sid) == html for sid, html in published.items())
