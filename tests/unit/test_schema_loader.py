"""
Tests for influxsync.schema.loader module.
"""

import pytest

from influxsync.exceptions import ConfigurationError, ParseError
from influxsync.schema.loader import (
    discover_files,
    load_continuous_queries,
    load_databases,
    load_desired_state,
)


class TestDiscoverFiles:
    """Test schema file discovery."""

    def test_recursive_and_sorted(self, tmp_path):
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "z.iql").write_text("x")
        (tmp_path / "a.iql").write_text("x")
        (tmp_path / "c.iql").write_text("x")

        files = discover_files(tmp_path)

        assert [p.relative_to(tmp_path).as_posix() for p in files] == ["a.iql", "b/z.iql", "c.iql"]

    def test_hidden_entries_skipped(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "config").write_text("x")
        (tmp_path / ".swp").write_text("x")
        (tmp_path / "real.iql").write_text("x")

        assert [p.name for p in discover_files(tmp_path)] == ["real.iql"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            discover_files(tmp_path / "nope")


class TestLoadDatabases:
    """Test loading database files."""

    def test_multiple_files(self, tmp_path):
        (tmp_path / "1.iql").write_text("CREATE DATABASE a;")
        (tmp_path / "2.iql").write_text("CREATE DATABASE b;")

        assert set(load_databases(tmp_path)) == {"a", "b"}

    def test_later_file_wins(self, tmp_path):
        (tmp_path / "1.iql").write_text("CREATE DATABASE a;")
        (tmp_path / "2.iql").write_text("CREATE DATABASE a WITH DURATION 1w NAME week;")

        databases = load_databases(tmp_path)

        assert list(databases["a"].retention_policies) == ["week"]

    def test_internal_database_is_ignored(self, tmp_path):
        (tmp_path / "1.iql").write_text("CREATE DATABASE _internal; CREATE DATABASE a;")
        assert list(load_databases(tmp_path)) == ["a"]

    def test_empty_directory(self, tmp_path):
        with pytest.raises(ConfigurationError, match="No database definition files"):
            load_databases(tmp_path)

    def test_file_without_database(self, tmp_path):
        (tmp_path / "1.iql").write_text("-- empty\n")
        with pytest.raises(ParseError) as exc_info:
            load_databases(tmp_path)
        assert exc_info.value.source.endswith("1.iql")


class TestLoadContinuousQueries:
    """Test loading continuous query files."""

    def test_empty_directory_means_none(self, tmp_path):
        assert load_continuous_queries(tmp_path) == {}

    def test_internal_queries_are_ignored(self, tmp_path):
        (tmp_path / "1.iql").write_text(
            "CREATE CONTINUOUS QUERY a ON _internal BEGIN SELECT 1 END;\n"
            "CREATE CONTINUOUS QUERY b ON db BEGIN SELECT 1 END;\n"
        )
        assert list(load_continuous_queries(tmp_path)) == [("db", "b")]


class TestLoadDesiredState:
    """Test loading a whole config directory."""

    def test_sample_config(self, config_dir):
        state = load_desired_state(config_dir)

        assert set(state.databases) == {"telegraf", "app"}
        assert set(state.databases["telegraf"].retention_policies) == {"rp_5y", "rp_1w"}
        assert state.databases["app"].default_policy.name == "rp_30d"
        assert set(state.continuous_queries) == {
            ("telegraf", "cq_cpu_1h"),
            ("app", "app.requests_1d"),
        }

    def test_custom_subdirectories(self, tmp_path):
        (tmp_path / "databases").mkdir()
        (tmp_path / "queries").mkdir()
        (tmp_path / "databases" / "x.iql").write_text("CREATE DATABASE x;")

        state = load_desired_state(
            tmp_path, databases_dir="databases", continuous_queries_dir="queries"
        )

        assert list(state.databases) == ["x"]
        assert state.continuous_queries == {}

    def test_missing_root(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Config directory not found"):
            load_desired_state(tmp_path / "missing")

    def test_missing_query_directory(self, tmp_path):
        (tmp_path / "db").mkdir()
        (tmp_path / "db" / "x.iql").write_text("CREATE DATABASE x;")
        with pytest.raises(ConfigurationError, match="not found"):
            load_desired_state(tmp_path)

    def test_query_for_undeclared_database_is_kept(self, tmp_path, make_config_dir):
        root = make_config_dir(
            tmp_path,
            {"x.iql": "CREATE DATABASE x;"},
            {"q.iql": "CREATE CONTINUOUS QUERY q ON other BEGIN SELECT 1 END;"},
        )
        state = load_desired_state(root)
        assert ("other", "q") in state.continuous_queries
