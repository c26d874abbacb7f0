"""
influxsync: Declarative schema management for InfluxDB.

influxsync reads database, retention policy and continuous query
definitions from schema files and brings a running InfluxDB server in line
with them, dropping only what you allow it to drop.
"""

__version__ = "0.1.0"
__author__ = "influxsync Contributors"

from .exceptions import (
    InfluxSyncError,
    ConfigurationError,
    ParseError,
    DatabaseError,
    ConnectivityError,
    QueryError,
)

__all__ = [
    "__version__",
    "InfluxSyncError",
    "ConfigurationError",
    "ParseError",
    "DatabaseError",
    "ConnectivityError",
    "QueryError",
]
