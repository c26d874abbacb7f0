"""
InfluxDB integration package for influxsync.

This package provides:
- Async HTTP client for the InfluxDB query protocol
- Endpoint URL parsing
- Live schema introspection
"""

from .connection import InfluxClient, InfluxEndpoint, connect
from .introspection import SchemaIntrospector

__all__ = [
    "InfluxClient",
    "InfluxEndpoint",
    "connect",
    "SchemaIntrospector",
]
