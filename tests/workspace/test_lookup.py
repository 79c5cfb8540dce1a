"""Tests for CaseInsensitiveMap."""

from __future__ import annotations

import pytest

from aiocliconf.workspace import CaseInsensitiveMap


class TestCaseInsensitiveMap:
    def test_lookup_any_case(self) -> None:
        m = CaseInsensitiveMap({"Claude": 1})
        assert m["claude"] == 1
        assert m["CLAUDE"] == 1
        assert "cLaUdE" in m

    def test_resolve_key_returns_stored_spelling(self) -> None:
        m = CaseInsensitiveMap({"Claude": 1})
        assert m.resolve_key("claude") == "Claude"
        assert m.resolve_key("codex") is None

    def test_missing_key(self) -> None:
        m = CaseInsensitiveMap({"Claude": 1})
        with pytest.raises(KeyError):
            _ = m["codex"]
        assert m.get("codex") is None

    def test_first_spelling_wins(self) -> None:
        m = CaseInsensitiveMap({"Claude": 1, "CLAUDE": 2})
        assert m["claude"] == 1
        assert len(m) == 2

    def test_iteration_order(self) -> None:
        m = CaseInsensitiveMap({"b": 1, "A": 2, "c": 3})
        assert list(m) == ["b", "A", "c"]

    def test_non_string_membership(self) -> None:
        assert 1 not in CaseInsensitiveMap({"a": 1})

    def test_empty(self) -> None:
        m: CaseInsensitiveMap[int] = CaseInsensitiveMap()
        assert len(m) == 0
        assert m.resolve_key("x") is None
