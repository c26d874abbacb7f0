"""
Unit tests for live schema introspection.
"""

import pytest
from unittest.mock import AsyncMock, Mock, call

from influxsync.database.connection import QueryResponse
from influxsync.database.introspection import (
    SchemaIntrospector,
    map_continuous_queries,
    map_retention_policies,
)
from influxsync.exceptions import QueryError
from influxsync.schema.models import RetentionPolicy


def results(body):
    return QueryResponse.model_validate(body).results


class TestMapRetentionPolicies:
    """Test mapping of SHOW RETENTION POLICIES output."""

    def test_mapping(self):
        body = {"results": [{"series": [{
            "columns": ["name", "duration", "shardGroupDuration", "replicaN", "default"],
            "values": [
                ["autogen", "0s", "168h0m0s", 1, False],
                ["rp_1w", "168h0m0s", "24h0m0s", 1, True],
            ],
        }]}]}

        policies = map_retention_policies(results(body))

        assert policies["autogen"] == RetentionPolicy("autogen", "infinite", "7d", False)
        assert policies["rp_1w"] == RetentionPolicy("rp_1w", "1w", "1d", True)

    def test_string_default_flag(self):
        body = {"results": [{"series": [{
            "columns": ["name", "duration", "shardGroupDuration", "default"],
            "values": [["a", "1h0m0s", "1h0m0s", "true"], ["b", "1h0m0s", "1h0m0s", "false"]],
        }]}]}

        policies = map_retention_policies(results(body))

        assert policies["a"].is_default is True
        assert policies["b"].is_default is False

    def test_missing_column(self):
        body = {"results": [{"series": [{"columns": ["name"], "values": [["a"]]}]}]}
        with pytest.raises(QueryError, match="missing column"):
            map_retention_policies(results(body))

    def test_empty(self):
        assert map_retention_policies(results({"results": [{}]})) == {}


class TestMapContinuousQueries:
    """Test mapping of SHOW CONTINUOUS QUERIES output."""

    def test_series_per_database(self):
        body = {"results": [{"series": [
            {"name": "_internal", "columns": ["name", "query"], "values": [["x", "CREATE ..."]]},
            {"name": "telegraf", "columns": ["name", "query"], "values": [
                ["cq_a", "CREATE CONTINUOUS QUERY cq_a ON telegraf BEGIN SELECT 1 END"],
            ]},
            {"name": "empty", "columns": ["name", "query"]},
        ]}]}

        queries = map_continuous_queries(results(body))

        assert list(queries) == [("telegraf", "cq_a")]
        assert queries[("telegraf", "cq_a")].definition.startswith("CREATE CONTINUOUS QUERY cq_a")

    def test_missing_column(self):
        body = {"results": [{"series": [
            {"name": "telegraf", "columns": ["name"], "values": [["cq_a"]]},
        ]}]}
        with pytest.raises(QueryError, match="missing column 'query'"):
            map_continuous_queries(results(body))


class TestSchemaIntrospector:
    """Test SchemaIntrospector against a mocked client."""

    @pytest.fixture
    def server(self, influx_server):
        server = influx_server
        server.add_database("telegraf", rp_1w=("168h0m0s", "24h0m0s", True))
        server.add_database("my db")
        server.queries["telegraf"] = [
            ("cq_a", "CREATE CONTINUOUS QUERY cq_a ON telegraf BEGIN SELECT 1 END"),
        ]
        return server

    @pytest.fixture
    def mock_client(self, server):
        client = Mock()
        client.query = AsyncMock(side_effect=lambda q: results(server.answer(q)))
        return client

    @pytest.mark.asyncio
    async def test_list_databases_excludes_internal(self, mock_client):
        names = await SchemaIntrospector(mock_client).list_databases()
        assert names == ["telegraf", "my db"]

    @pytest.mark.asyncio
    async def test_retention_policies_quote_name(self, mock_client):
        policies = await SchemaIntrospector(mock_client).get_retention_policies("my db")

        mock_client.query.assert_awaited_once_with('SHOW RETENTION POLICIES ON "my db"')
        assert list(policies) == ["autogen"]

    @pytest.mark.asyncio
    async def test_load_state(self, mock_client):
        state = await SchemaIntrospector(mock_client).load_state()

        assert set(state.databases) == {"telegraf", "my db"}
        assert state.databases["telegraf"].default_policy.name == "rp_1w"
        assert list(state.continuous_queries) == [("telegraf", "cq_a")]
        assert mock_client.query.await_args_list == [
            call("SHOW DATABASES"),
            call('SHOW RETENTION POLICIES ON "telegraf"'),
            call('SHOW RETENTION POLICIES ON "my db"'),
            call("SHOW CONTINUOUS QUERIES"),
        ]

    @pytest.mark.asyncio
    async def test_query_error_propagates(self, mock_client):
        mock_client.query.side_effect = QueryError("authorization failed")
        with pytest.raises(QueryError, match="authorization failed"):
            await SchemaIntrospector(mock_client).load_state()
