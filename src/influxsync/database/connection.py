"""
InfluxDB connection handling for influxsync.

Provides the HTTP client for the InfluxDB 1.x query protocol: endpoint
URL parsing, liveness ping and query execution with error payload checks.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import urlparse

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from ..exceptions import ConnectivityError, QueryError


logger = logging.getLogger(__name__)


DEFAULT_PORT = 8086
SUPPORTED_SCHEMES = ("http",)


class InfluxEndpoint(BaseModel):
    """Address of an InfluxDB server."""

    scheme: str = Field("http", description="Protocol")
    host: str = Field("localhost", description="Server host")
    port: int = Field(DEFAULT_PORT, description="Server HTTP port")

    @classmethod
    def from_url(cls, url: str) -> "InfluxEndpoint":
        """
        Parse an endpoint URL such as ``http://localhost:8086``.

        A bare ``host:port`` is taken as plain HTTP.

        Raises:
            ConnectivityError: If the URL is malformed or its protocol
                is not supported
        """
        text = url.strip()
        if "://" not in text:
            text = f"http://{text}"

        try:
            parsed = urlparse(text)
            port = parsed.port
        except ValueError as e:
            raise ConnectivityError(f"Invalid InfluxDB URL: {url}", cause=e)

        if parsed.scheme not in SUPPORTED_SCHEMES:
            raise ConnectivityError(
                f"Unsupported protocol '{parsed.scheme}' in InfluxDB URL: {url}",
                details={"supported": ", ".join(SUPPORTED_SCHEMES)},
            )
        if not parsed.hostname:
            raise ConnectivityError(f"Invalid InfluxDB URL, no host: {url}")
        if parsed.path not in ("", "/"):
            raise ConnectivityError(f"Invalid InfluxDB URL, unexpected path: {url}")

        return cls(scheme=parsed.scheme, host=parsed.hostname, port=port or DEFAULT_PORT)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.base_url


class Series(BaseModel):
    """One series of a statement result."""

    name: Optional[str] = None
    columns: List[str] = Field(default_factory=list)
    values: List[List[Any]] = Field(default_factory=list)

    def rows(self) -> List[Dict[str, Any]]:
        """Get values as dicts keyed by column name."""
        return [dict(zip(self.columns, row)) for row in self.values]


class StatementResult(BaseModel):
    """Result of one statement of a query."""

    statement_id: int = 0
    series: List[Series] = Field(default_factory=list)
    error: Optional[str] = None


class QueryResponse(BaseModel):
    """Body returned by the ``/query`` endpoint."""

    results: List[StatementResult] = Field(default_factory=list)
    error: Optional[str] = None


class InfluxClient:
    """
    Minimal async client for the InfluxDB 1.x HTTP API.

    Requests are issued one at a time; nothing is retried.
    """

    def __init__(self, endpoint: InfluxEndpoint, timeout: float = 30.0):
        self.endpoint = endpoint
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": "influxsync/1.0"},
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "InfluxClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def ping(self) -> bool:
        """
        Check that the server answers.

        Raises:
            ConnectivityError: If the server is unreachable or unhealthy
        """
        session = await self._get_session()
        url = f"{self.endpoint.base_url}/ping"

        try:
            async with session.get(url) as response:
                if response.status not in (200, 204):
                    raise ConnectivityError(
                        f"InfluxDB at {self.endpoint} answered ping with "
                        f"status {response.status}"
                    )
                version = response.headers.get("X-Influxdb-Version")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ConnectivityError(f"Cannot reach InfluxDB at {self.endpoint}", cause=e)

        logger.debug(f"Connected to InfluxDB {version or '(unknown version)'} at {self.endpoint}")
        return True

    async def query(self, statement: str) -> List[StatementResult]:
        """
        Run one or more InfluxQL statements.

        Args:
            statement: Statement text; several statements may be joined
                with semicolons

        Returns:
            One StatementResult per statement

        Raises:
            QueryError: On transport failure, an unexpected status, an
                unreadable body, or an error reported for any statement
        """
        session = await self._get_session()
        url = f"{self.endpoint.base_url}/query"
        logger.debug(f"Query: {statement}")

        try:
            async with session.post(url, data={"q": statement}) as response:
                status = response.status
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise QueryError(
                f"Query failed against {self.endpoint}", statement=statement, cause=e
            )

        if body is None:
            raise QueryError(
                f"InfluxDB returned an unreadable response (status {status})",
                statement=statement,
                status_code=status,
            )

        try:
            parsed = QueryResponse.model_validate(body)
        except ValidationError as e:
            raise QueryError(
                "InfluxDB returned an unexpected response",
                statement=statement,
                status_code=status,
                cause=e,
            )

        if parsed.error:
            raise QueryError(parsed.error, statement=statement, status_code=status)
        for result in parsed.results:
            if result.error:
                raise QueryError(result.error, statement=statement, status_code=status)
        if status >= 300:
            raise QueryError(
                f"InfluxDB answered with status {status}",
                statement=statement,
                status_code=status,
            )

        return parsed.results


@asynccontextmanager
async def connect(endpoint: InfluxEndpoint, timeout: float = 30.0) -> AsyncIterator[InfluxClient]:
    """Open a client, check the server is alive and close it afterwards."""
    client = InfluxClient(endpoint, timeout=timeout)
    try:
        await client.ping()
        yield client
    finally:
        await client.close()
