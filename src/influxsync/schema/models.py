"""
Schema entities for influxsync.

Databases, retention policies and continuous queries as immutable
snapshots, plus the normalization rules used to decide whether a live
object has drifted from its declaration.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


INFINITE = "infinite"

AUTOGEN_POLICY = "autogen"
AUTOGEN_SHARD_DURATION = "7d"

# Database InfluxDB keeps for its own monitoring data.
INTERNAL_DATABASE = "_internal"

DURATION_UNITS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}

_DURATION_TOKEN = re.compile(r"(\d+)([smhdw])")
_WHITESPACE = re.compile(r"\s+")


def is_infinite(duration: str) -> bool:
    """Check if a duration string means "keep forever"."""
    return duration.strip().lower() in (INFINITE, "inf")


def to_seconds(duration: str) -> int:
    """
    Convert an InfluxQL duration string to a number of seconds.

    Accepts concatenated ``<int><unit>`` tokens as written in config files
    (``260w``) and as reported by the server (``168h0m0s``). The
    ``infinite`` sentinel is 0 seconds, which is also how the server
    reports an unbounded retention.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = duration.strip().lower()
    if is_infinite(text):
        return 0

    total = 0
    pos = 0
    for match in _DURATION_TOKEN.finditer(text):
        if match.start() != pos:
            break
        total += int(match.group(1)) * DURATION_UNITS[match.group(2)]
        pos = match.end()

    if not text or pos != len(text):
        raise ValueError(f"Invalid duration: {duration!r}")
    return total


def default_shard_duration(duration: str) -> str:
    """Shard group duration InfluxDB picks when none is given."""
    seconds = to_seconds(duration)
    if seconds == 0:
        return AUTOGEN_SHARD_DURATION
    if seconds < 2 * DURATION_UNITS["d"]:
        return "1h"
    if seconds <= 180 * DURATION_UNITS["d"]:
        return "1d"
    return AUTOGEN_SHARD_DURATION


def normalize_query(definition: str) -> str:
    """
    Normalize a continuous query definition for comparison.

    The server rewrites stored queries (quoting, spacing, dropping a no-op
    ``fill(null)``), so a declared and a stored definition are compared
    with all of that stripped away.
    """
    text = _WHITESPACE.sub("", definition)
    text = text.replace(";", "").replace('"', "").lower()
    return text.replace("fill(null)", "")


@dataclass(frozen=True, eq=False)
class RetentionPolicy:
    """A retention policy of a database."""

    name: str
    duration: str
    shard_duration: str
    is_default: bool = False

    @property
    def duration_seconds(self) -> int:
        return to_seconds(self.duration)

    @property
    def shard_duration_seconds(self) -> int:
        return to_seconds(self.shard_duration)

    def _normalized(self) -> Tuple[str, int, int, bool]:
        return (
            self.name,
            self.duration_seconds,
            self.shard_duration_seconds,
            bool(self.is_default),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RetentionPolicy):
            return NotImplemented
        return self._normalized() == other._normalized()

    def __hash__(self) -> int:
        return hash(self._normalized())

    def __str__(self) -> str:
        result = f"{self.name} duration={self.duration} shard={self.shard_duration}"
        if self.is_default:
            result += " default"
        return result


@dataclass(frozen=True)
class Database:
    """
    A database with its retention policies.

    ``initial_policy`` is the retention policy ``create_query`` brings into
    existence on its own. It is only known for declared databases.
    """

    name: str
    create_query: str = ""
    retention_policies: Dict[str, RetentionPolicy] = field(default_factory=dict)
    initial_policy: Optional[RetentionPolicy] = None

    @property
    def default_policy(self) -> Optional[RetentionPolicy]:
        """Get the retention policy marked default, if any."""
        for policy in self.retention_policies.values():
            if policy.is_default:
                return policy
        return None


@dataclass(frozen=True, eq=False)
class ContinuousQuery:
    """A continuous query, keyed by database and name."""

    database: str
    name: str
    definition: str

    @property
    def key(self) -> Tuple[str, str]:
        return (self.database, self.name)

    @property
    def normalized_definition(self) -> str:
        return normalize_query(self.definition)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContinuousQuery):
            return NotImplemented
        return (
            self.key == other.key
            and self.normalized_definition == other.normalized_definition
        )

    def __hash__(self) -> int:
        return hash((self.key, self.normalized_definition))


@dataclass(frozen=True)
class SchemaState:
    """A full snapshot of databases and continuous queries."""

    databases: Dict[str, Database] = field(default_factory=dict)
    continuous_queries: Dict[Tuple[str, str], ContinuousQuery] = field(
        default_factory=dict
    )

    @property
    def is_empty(self) -> bool:
        return not self.databases and not self.continuous_queries
