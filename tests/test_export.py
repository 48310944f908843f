"""Tests for relcache.export module."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from relcache.agents import ClusterCachingAgent
from relcache.cache import InMemoryCacheStore, ProviderCache
from relcache.export import dump_store, json_serial, load_store, read_jsonl, write_jsonl


class TestJsonl:
    """Tests for JSONL helpers."""

    def test_write_and_read(self, tmp_path):
        """Test records survive a write/read cycle, blank lines skipped."""
        path = write_jsonl([{"a": 1}, {"b": {"c"}}], tmp_path / "nested" / "out.jsonl")
        with path.open("a", encoding="utf-8") as f:
            f.write("\n")

        assert list(read_jsonl(path)) == [{"a": 1}, {"b": ["c"]}]

    def test_json_serial(self):
        """Test datetimes and sets are serialized."""
        when = datetime(2024, 1, 2, tzinfo=timezone.utc)

        assert json_serial(when) == "2024-01-02T00:00:00+00:00"
        assert json_serial({"b", "a"}) == ["a", "b"]
        with pytest.raises(TypeError):
            json_serial(object())


class TestDumpStore:
    """Tests for dump_store and load_store."""

    def test_dump_then_load(self, store, fetcher, tmp_path):
        """Test a dump restores the same entities into a fresh store."""
        agent = ClusterCachingAgent(fetcher, "prod", "us-east-1")
        ProviderCache(store).put_cache_result(agent.agent_type, agent.provided_data_types, agent.load_data())

        counts = dump_store(store, tmp_path)
        restored = InMemoryCacheStore()
        loaded = load_store(restored, tmp_path)

        assert counts["serverGroup"] == 3
        assert counts["image"] == 0
        assert {ns: n for ns, n in loaded.items() if n} == store.stats()
        for namespace in store.stats():
            for id in store.get_identifiers(namespace):
                assert restored.get(namespace, id).to_dict() == store.get(namespace, id).to_dict()

    def test_dump_files_are_sorted(self, store, fetcher, tmp_path):
        """Test entities are written in id order."""
        agent = ClusterCachingAgent(fetcher, "prod", "us-east-1")
        ProviderCache(store).put_cache_result(agent.agent_type, agent.provided_data_types, agent.load_data())
        dump_store(store, tmp_path)

        ids = [json.loads(line)["id"] for line in (tmp_path / "serverGroup.jsonl").read_text().splitlines()]
        assert ids == sorted(ids)

    def test_load_skips_missing_files(self, tmp_path):
        """Test namespaces without a file are skipped."""
        write_jsonl([{"id": "aws:application:web", "attributes": {"name": "web"}}], tmp_path / "application.jsonl")
        restored = InMemoryCacheStore()

        assert load_store(restored, tmp_path) == {"application": 1}
        assert restored.get("application", "aws:application:web").attributes == {"name": "web"}
