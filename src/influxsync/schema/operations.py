"""
Change operations for influxsync.

A ChangeOperation is one planned InfluxQL statement together with what it
touches and whether the safety flags hold it back. This module also
renders the statements the differ puts into operations.
"""

from dataclasses import dataclass
from enum import Enum

from .models import ContinuousQuery, Database, RetentionPolicy, is_infinite


class Action(str, Enum):
    """What an operation does to its object."""

    DELETE = "delete"
    UPDATE = "update"
    CREATE = "create"


class ObjectKind(str, Enum):
    """Kinds of schema objects influxsync manages."""

    DATABASE = "database"
    RETENTION_POLICY = "retention_policy"
    CONTINUOUS_QUERY = "continuous_query"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


@dataclass(frozen=True)
class ChangeOperation:
    """A single planned change to the server schema."""

    action: Action
    object_kind: ObjectKind
    database: str
    name: str
    statement: str
    skip: bool = False

    @property
    def is_destructive(self) -> bool:
        """Check if executing this operation removes an object."""
        return self.action == Action.DELETE

    @property
    def description(self) -> str:
        """Human readable one-line summary."""
        result = f"{self.action.value} {self.object_kind.label} {self.name}"
        if self.object_kind != ObjectKind.DATABASE:
            result += f" on {self.database}"
        return result

    def __str__(self) -> str:
        return self.description


def compute_skip(action: Action, force: bool, dryrun: bool) -> bool:
    """
    Decide whether an operation is held back.

    Dry runs hold back everything. Deletions additionally need ``force``;
    creations and updates are never affected by it.
    """
    if dryrun:
        return True
    if action == Action.DELETE:
        return not force
    return False


def quote_ident(name: str) -> str:
    """Quote an InfluxQL identifier."""
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_duration(duration: str) -> str:
    return "INF" if is_infinite(duration) else duration


def _policy_clauses(policy: RetentionPolicy) -> str:
    clauses = (
        f"DURATION {render_duration(policy.duration)} REPLICATION 1 "
        f"SHARD DURATION {render_duration(policy.shard_duration)}"
    )
    if policy.is_default:
        clauses += " DEFAULT"
    return clauses


def create_database_statement(database: Database) -> str:
    if database.create_query:
        return database.create_query
    return f"CREATE DATABASE {quote_ident(database.name)}"


def drop_database_statement(name: str) -> str:
    return f"DROP DATABASE {quote_ident(name)}"


def create_retention_policy_statement(database: str, policy: RetentionPolicy) -> str:
    return (
        f"CREATE RETENTION POLICY {quote_ident(policy.name)} ON {quote_ident(database)} "
        f"{_policy_clauses(policy)}"
    )


def alter_retention_policy_statement(database: str, policy: RetentionPolicy) -> str:
    return (
        f"ALTER RETENTION POLICY {quote_ident(policy.name)} ON {quote_ident(database)} "
        f"{_policy_clauses(policy)}"
    )


def drop_retention_policy_statement(database: str, name: str) -> str:
    return f"DROP RETENTION POLICY {quote_ident(name)} ON {quote_ident(database)}"


def drop_continuous_query_statement(database: str, name: str) -> str:
    return f"DROP CONTINUOUS QUERY {quote_ident(name)} ON {quote_ident(database)}"


def replace_continuous_query_statement(query: ContinuousQuery) -> str:
    """Drop and recreate a continuous query in one request."""
    drop = drop_continuous_query_statement(query.database, query.name)
    return f"{drop}; {query.definition}"
