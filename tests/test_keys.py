"""Tests for reqcache.keys -- canonical keys and the URL builder."""

from __future__ import annotations

import pytest

from reqcache.keys import UrlBuilder, make_key, strip_query


class TestMakeKey:
    def test_path_only(self) -> None:
        assert make_key("/users") == "/users"
        assert make_key("users/5") == "/users/5"

    def test_params_sorted(self) -> None:
        assert make_key("/users", {"page": 2, "active": True}) == "/users?active=true&page=2"
        assert make_key("/users", {"active": True, "page": 2}) == make_key(
            "/users", {"page": 2, "active": True}
        )

    def test_none_dropped(self) -> None:
        assert make_key("/users", {"page": None}) == "/users"
        assert make_key("/users", {"page": None, "q": "a"}) == "/users?q=a"

    def test_bracket_arrays(self) -> None:
        assert make_key("/items", {"tag": ["a", "b"]}) == "/items?tag[]=a&tag[]=b"

    def test_values_encoded(self) -> None:
        assert make_key("/search", {"q": "a b&c"}) == "/search?q=a+b%26c"

    def test_strip_query(self) -> None:
        assert strip_query("/users?active=true") == "/users"
        assert strip_query("/users") == "/users"


class TestUrlBuilder:
    def _builder(self) -> tuple[UrlBuilder, list[tuple]]:
        calls: list[tuple] = []

        def callback(method, path, params, body):
            calls.append((method, path, params, body))
            return len(calls)

        return UrlBuilder(callback), calls

    def test_attribute_and_item_segments(self) -> None:
        api, calls = self._builder()
        assert api.users[5].posts() == 1
        assert calls == [("GET", "/users/5/posts", None, None)]

    def test_params(self) -> None:
        api, calls = self._builder()
        api.users({"active": True})
        assert calls[0][2] == {"active": True}

    def test_method_segment(self) -> None:
        api, calls = self._builder()
        api.users.post(body={"name": "B"})
        api.users[5].delete()
        assert calls[0] == ("POST", "/users", None, {"name": "B"})
        assert calls[1][:2] == ("DELETE", "/users/5")

    def test_item_segments_quoted(self) -> None:
        api, calls = self._builder()
        api.files["a/b c"]()
        assert calls[0][1] == "/files/a%2Fb%20c"

    def test_dunder_lookup_raises(self) -> None:
        api, _ = self._builder()
        with pytest.raises(AttributeError):
            api.__wrapped__

    def test_repr(self) -> None:
        api, _ = self._builder()
        assert repr(api.users[5]) == "UrlBuilder('/users/5')"
