"""
Pytest configuration and shared fixtures for influxsync tests.

This module provides schema definition samples, config directories on disk
and a fake InfluxDB server answering through aioresponses.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
from aioresponses import aioresponses
from aioresponses import CallbackResult

from influxsync.config import InfluxSyncConfig


INFLUX_URL = "http://localhost:8086"


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI installs so they never outlive the test runner streams."""
    yield
    logger = logging.getLogger("influxsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


# ============================================================================
# Schema Definition Fixtures
# ============================================================================

@pytest.fixture
def databases_text() -> str:
    """Database file declaring two databases and their policies."""
    return """
-- monitoring data
CREATE DATABASE telegraf WITH DURATION 260w REPLICATION 1 SHARD DURATION 12w NAME rp_5y;
CREATE RETENTION POLICY rp_1w ON telegraf DURATION 1w REPLICATION 1 SHARD DURATION 1d;

CREATE DATABASE "app";
CREATE RETENTION POLICY "rp_30d" ON "app" DURATION 30d REPLICATION 1 SHARD DURATION 1d DEFAULT;
"""


@pytest.fixture
def continuous_queries_text() -> str:
    """Continuous query file with two queries."""
    return """
CREATE CONTINUOUS QUERY "cq_cpu_1h" ON "telegraf"
BEGIN
  SELECT mean("usage_idle") AS "usage_idle" INTO "telegraf"."rp_5y"."cpu_1h"
  FROM "telegraf"."rp_1w"."cpu" GROUP BY time(1h), * FILL(null)
END;

CREATE CONTINUOUS QUERY app.requests_1d ON app
BEGIN
  SELECT count("value") INTO "app"."rp_30d"."requests_1d" FROM "requests" GROUP BY time(1d)
END;
"""


def write_config_dir(
    root: Path,
    database_files: Dict[str, str],
    query_files: Optional[Dict[str, str]] = None,
) -> Path:
    """Write a config directory with ``db`` and ``cq`` subdirectories."""
    (root / "db").mkdir(parents=True, exist_ok=True)
    (root / "cq").mkdir(parents=True, exist_ok=True)
    for name, text in database_files.items():
        (root / "db" / name).write_text(text, encoding="utf-8")
    for name, text in (query_files or {}).items():
        (root / "cq" / name).write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def make_config_dir():
    """Factory writing a config directory from file name to text mappings."""
    return write_config_dir


@pytest.fixture
def config_dir(tmp_path, databases_text, continuous_queries_text) -> Path:
    """Config directory holding the sample schema files."""
    return write_config_dir(
        tmp_path / "schema",
        {"10-databases.iql": databases_text},
        {"10-queries.iql": continuous_queries_text},
    )


@pytest.fixture
def sync_config(config_dir) -> InfluxSyncConfig:
    """Settings pointing at the sample config directory."""
    return InfluxSyncConfig(config_dir=config_dir, url=INFLUX_URL)


# ============================================================================
# Fake InfluxDB Server
# ============================================================================

def influx_response(*series: Dict[str, Any], error: Optional[str] = None) -> Dict[str, Any]:
    """Build a ``/query`` response body with a single statement result."""
    result: Dict[str, Any] = {"statement_id": 0}
    if series:
        result["series"] = list(series)
    if error:
        result["error"] = error
    return {"results": [result]}


class FakeInfluxServer:
    """
    In-memory InfluxDB answering the queries influxsync issues.

    SHOW statements are answered from ``databases`` and ``queries``; every
    other statement is recorded in ``executed`` and acknowledged.
    """

    def __init__(self):
        # database -> policy name -> (duration, shard duration, default)
        self.databases: Dict[str, Dict[str, Tuple[str, str, bool]]] = {
            "_internal": {"monitor": ("168h0m0s", "24h0m0s", True)},
        }
        # database -> [(name, query)]
        self.queries: Dict[str, List[Tuple[str, str]]] = {}
        self.executed: List[str] = []
        self.fail_on: Optional[str] = None

    def add_database(self, name: str, **policies: Tuple[str, str, bool]) -> None:
        self.databases[name] = policies or {"autogen": ("0s", "168h0m0s", True)}

    def answer(self, statement: str) -> Dict[str, Any]:
        if self.fail_on and self.fail_on in statement:
            return influx_response(error=f"error parsing query: {statement}")

        if statement == "SHOW DATABASES":
            return influx_response({
                "name": "databases",
                "columns": ["name"],
                "values": [[name] for name in self.databases],
            })

        match = re.fullmatch(r'SHOW RETENTION POLICIES ON "(.+)"', statement)
        if match:
            policies = self.databases.get(match.group(1))
            if policies is None:
                return influx_response(error=f"database not found: {match.group(1)}")
            return influx_response({
                "columns": ["name", "duration", "shardGroupDuration", "replicaN", "default"],
                "values": [
                    [name, duration, shard, 1, default]
                    for name, (duration, shard, default) in policies.items()
                ],
            })

        if statement == "SHOW CONTINUOUS QUERIES":
            series = []
            for database in self.databases:
                entry: Dict[str, Any] = {"name": database, "columns": ["name", "query"]}
                if self.queries.get(database):
                    entry["values"] = [list(q) for q in self.queries[database]]
                series.append(entry)
            return influx_response(*series)

        self.executed.append(statement)
        return {"results": [{"statement_id": 0}]}

    def callback(self, url, **kwargs) -> CallbackResult:
        statement = kwargs["data"]["q"]
        return CallbackResult(status=200, payload=self.answer(statement))


@pytest.fixture
def influx_server() -> FakeInfluxServer:
    """Fake InfluxDB server state, not yet wired to HTTP."""
    return FakeInfluxServer()


@pytest.fixture
def fake_influx(influx_server):
    """Fake InfluxDB server behind aioresponses at INFLUX_URL."""
    server = influx_server
    with aioresponses() as m:
        m.get(f"{INFLUX_URL}/ping", status=204, repeat=True)
        m.post(f"{INFLUX_URL}/query", callback=server.callback, repeat=True)
        yield server
