"""Tests for the MCP server tools, resources, and prompts."""

from __future__ import annotations

import json

import pytest

import chemsearch.mcp.server as srv
from chemsearch.core.session import MAX_BOOKMARKS, SearchSession
from chemsearch.core.storage import MemoryStorage
from chemsearch.mcp.server import (
    chem_add_bookmark,
    chem_clear_history,
    chem_query_help,
    chem_record_click,
    chem_remove_bookmark,
    chem_search,
    chem_suggest,
    mcp,
    resource_analytics,
    resource_bookmarks,
    resource_history,
    resource_stats,
    set_session,
)
from chemsearch.utils.paths import DATASET_ENV, HOME_ENV


@pytest.fixture
def session(engine):
    s = SearchSession(engine, storage=MemoryStorage())
    set_session(s)
    yield s
    set_session(None)


def _ids(result: str) -> list[str]:
    return [r["id"] for r in json.loads(result)["results"]]


class TestSearchTool:
    def test_phrase(self, session):
        data = json.loads(chem_search('"sodium chloride"'))
        assert data["total_count"] == 1
        assert data["results"][0]["id"] == "nacl"
        assert data["results"][0]["type"] == "compound"
        assert "title" in data["results"][0]["matched_fields"]

    def test_types_and_filters(self, session):
        assert set(_ids(chem_search("", types=["element"]))) == {"H", "Na", "Cl"}
        assert set(_ids(chem_search("", filters=["mw:100-200"]))) == {"citric", "glucose"}

    def test_sort_and_pagination(self, session):
        result = chem_search("", types=["element"], sort_by="atomic_number", sort_order="desc", limit=1, offset=1)
        assert _ids(result) == ["Na"]
        assert json.loads(result)["total_count"] == 3

    @pytest.mark.parametrize(
        "kwargs",
        [{"types": ["mineral"]}, {"filters": ["nonsense"]}, {"sort_by": "weight"}, {"sort_order": "up"}],
    )
    def test_invalid_arguments(self, session, kwargs):
        assert "error" in json.loads(chem_search("acid", **kwargs))

    def test_records_history_and_analytics(self, session):
        chem_search("acid")
        chem_search("xenon", voice=True)
        assert [h.query for h in session.history()] == ["xenon", "acid"]
        state = json.loads(resource_analytics())
        assert state["total_searches"] == 2
        assert state["no_results_queries"][0]["query"] == "xenon"


class TestSuggestTool:
    def test_suggest(self, session):
        assert "Sodium Chloride" in json.loads(chem_suggest("sodium"))

    def test_entity_type(self, session):
        suggestions = json.loads(chem_suggest("sodium", "element"))
        assert suggestions[0] == "Sodium"
        assert "Sodium Chloride" not in suggestions

    def test_invalid_type(self, session):
        assert "error" in json.loads(chem_suggest("sodium", "mineral"))


class TestBookmarkTools:
    def test_add_and_remove(self, session):
        added = json.loads(chem_add_bookmark("Heavy acids", "acid", types=["compound"], filters=["mw:50-"]))
        assert added["status"] == "ok"
        bookmarks = json.loads(resource_bookmarks())
        assert bookmarks[0]["name"] == "Heavy acids"
        assert bookmarks[0]["filters"]["entity_types"] == ["compound"]

        assert json.loads(chem_remove_bookmark(added["id"]))["status"] == "removed"
        assert json.loads(chem_remove_bookmark(added["id"]))["status"] == "not_found"
        assert json.loads(resource_bookmarks()) == []

    def test_capacity(self, session):
        for i in range(MAX_BOOKMARKS):
            chem_add_bookmark(f"b{i}", "acid")
        assert "error" in json.loads(chem_add_bookmark("one more", "acid"))


class TestClickTool:
    def test_click_feeds_popularity(self, session):
        chem_record_click("compound", "glucose", "sugar")
        chem_record_click("Compound", "glucose")
        assert json.loads(resource_analytics())["result_clicks"] == {"compound:glucose": 2}
        result = chem_search("", types=["compound"], sort_by="popularity")
        assert _ids(result)[0] == "glucose"

    def test_unknown_record(self, session):
        assert "error" in json.loads(chem_record_click("compound", "unobtainium"))


def test_clear_history(session):
    chem_search("acid")
    assert json.loads(chem_clear_history()) == {"status": "cleared"}
    assert json.loads(resource_history()) == []


def test_stats_resource(session, records):
    data = json.loads(resource_stats())
    assert data["total"] == len(records)
    assert data["by_type"]["calculator"] == 2
    assert data["config"]["threshold"] == 0.1


def test_query_help_prompt():
    text = chem_query_help()
    assert "NOT" in text
    assert "mw:100-200" in text


def test_default_session_uses_bundled_dataset(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv(HOME_ENV, str(tmp_path / "store"))
    monkeypatch.delenv(DATASET_ENV, raising=False)
    set_session(None)
    try:
        session = srv._get_session()
        assert len(session.engine.index) > 0
        assert srv._get_session() is session
    finally:
        set_session(None)


class TestUnloadableSession:
    @pytest.fixture(autouse=True)
    def isolated(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.setenv(HOME_ENV, str(tmp_path / "store"))
        set_session(None)
        yield tmp_path
        set_session(None)

    def test_missing_dataset(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATASET_ENV, str(tmp_path / "missing.json"))
        for result in (
            chem_search("acid"),
            chem_suggest("sod"),
            chem_add_bookmark("Acids", "acid"),
            chem_clear_history(),
            resource_history(),
            resource_stats(),
        ):
            assert "not found" in json.loads(result)["error"]

    def test_invalid_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DATASET_ENV, raising=False)
        config_dir = tmp_path / "home" / ".config" / "chemsearch"
        config_dir.mkdir(parents=True)
        (config_dir / "config.json").write_text('{"search": {"threshold": 5}}')
        assert "Invalid search configuration" in json.loads(chem_search("acid"))["error"]
        assert "error" in json.loads(chem_record_click("compound", "water"))

    def test_undecodable_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DATASET_ENV, raising=False)
        config_dir = tmp_path / "home" / ".config" / "chemsearch"
        config_dir.mkdir(parents=True)
        (config_dir / "config.json").write_bytes(b"\xff\xfe\x00bad")
        assert "Invalid JSON" in json.loads(chem_search("acid"))["error"]


class TestMCPRegistration:
    def test_tools_registered(self):
        tool_names = set(mcp._tool_manager._tools.keys())
        assert tool_names == {
            "chem_search",
            "chem_suggest",
            "chem_add_bookmark",
            "chem_remove_bookmark",
            "chem_record_click",
            "chem_clear_history",
        }

    def test_prompts_registered(self):
        assert "chem_query_help" in set(mcp._prompt_manager._prompts.keys())
