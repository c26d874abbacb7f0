"""
Live schema introspection for influxsync.

Reads databases, retention policies and continuous queries from a running
InfluxDB server and maps them into the same entities the parser produces.
"""

import logging
from typing import Any, Dict, List, Tuple

from .connection import InfluxClient, StatementResult
from ..exceptions import QueryError
from ..schema.models import (
    INTERNAL_DATABASE,
    ContinuousQuery,
    Database,
    RetentionPolicy,
    SchemaState,
)
from ..schema.operations import quote_ident


logger = logging.getLogger(__name__)


def _rows(results: List[StatementResult]) -> List[Dict[str, Any]]:
    rows = []
    for result in results:
        for series in result.series:
            rows.extend(series.rows())
    return rows


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def map_retention_policies(results: List[StatementResult]) -> Dict[str, RetentionPolicy]:
    """Map a ``SHOW RETENTION POLICIES`` result."""
    policies = {}
    for row in _rows(results):
        try:
            policy = RetentionPolicy(
                name=row["name"],
                duration=row["duration"],
                shard_duration=row["shardGroupDuration"],
                is_default=_as_bool(row.get("default", False)),
            )
        except KeyError as e:
            raise QueryError(f"Retention policy listing is missing column {e}")
        policies[policy.name] = policy
    return policies


def map_continuous_queries(
    results: List[StatementResult],
) -> Dict[Tuple[str, str], ContinuousQuery]:
    """
    Map a ``SHOW CONTINUOUS QUERIES`` result.

    The server returns one series per database, named after it.
    """
    queries = {}
    for result in results:
        for series in result.series:
            database = series.name
            if not database or database == INTERNAL_DATABASE:
                continue
            for row in series.rows():
                try:
                    query = ContinuousQuery(
                        database=database, name=row["name"], definition=row["query"]
                    )
                except KeyError as e:
                    raise QueryError(f"Continuous query listing is missing column {e}")
                queries[query.key] = query
    return queries


class SchemaIntrospector:
    """Loads the observed schema state from InfluxDB."""

    def __init__(self, client: InfluxClient):
        self.client = client

    async def list_databases(self) -> List[str]:
        """Get database names, without the internal monitoring database."""
        results = await self.client.query("SHOW DATABASES")
        names = [row["name"] for row in _rows(results) if "name" in row]
        return [name for name in names if name != INTERNAL_DATABASE]

    async def get_retention_policies(self, database: str) -> Dict[str, RetentionPolicy]:
        """Get retention policies of one database keyed by name."""
        results = await self.client.query(
            f"SHOW RETENTION POLICIES ON {quote_ident(database)}"
        )
        return map_retention_policies(results)

    async def get_continuous_queries(self) -> Dict[Tuple[str, str], ContinuousQuery]:
        """Get all continuous queries keyed by ``(database, name)``."""
        results = await self.client.query("SHOW CONTINUOUS QUERIES")
        return map_continuous_queries(results)

    async def load_state(self) -> SchemaState:
        """Read the full observed state, one request after the other."""
        databases = {}
        for name in await self.list_databases():
            databases[name] = Database(
                name=name, retention_policies=await self.get_retention_policies(name)
            )

        queries = await self.get_continuous_queries()

        logger.info(
            f"Observed {len(databases)} databases, "
            f"{sum(len(db.retention_policies) for db in databases.values())} retention "
            f"policies and {len(queries)} continuous queries"
        )
        return SchemaState(databases=databases, continuous_queries=queries)
