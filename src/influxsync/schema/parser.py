"""
Schema definition parser for influxsync.

Recognizes the small subset of InfluxQL that schema files are written in:

- ``CREATE DATABASE <name> [WITH DURATION ... SHARD DURATION ... NAME ...]``
- ``CREATE RETENTION POLICY <rp> ON <db> DURATION ... [DEFAULT]``
- ``DROP RETENTION POLICY <rp> ON <db>``
- ``CREATE CONTINUOUS QUERY <cq> ON <db> ... BEGIN ... END``

The text is tokenized first, statements are then matched over the token
stream. Verbatim spans (database creation, continuous query definitions)
are sliced out of the source text using token offsets, without the
comments between them.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .models import (
    AUTOGEN_POLICY,
    AUTOGEN_SHARD_DURATION,
    INFINITE,
    ContinuousQuery,
    Database,
    RetentionPolicy,
    default_shard_duration,
    is_infinite,
    to_seconds,
)
from ..exceptions import ParseError


logger = logging.getLogger(__name__)


_TOKEN_SPEC = [
    ("comment", r"--[^\n]*"),
    ("space", r"\s+"),
    ("ident", r'"(?:[^"\\]|\\.)*"'),
    ("string", r"'(?:[^'\\]|\\.)*'"),
    ("semicolon", r";"),
    ("punct", r"[(),]"),
    ("word", r"[^\s;(),\"']+"),
    ("other", r"."),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

# Keywords that open a new statement even without a separating semicolon.
_STATEMENT_KEYWORDS = ("CREATE", "DROP", "ALTER")

# Comments between two tokens; whole comment lines take their line break along.
_GAP_COMMENT = re.compile(r"(?:\n[ \t]*--[^\n]*)+(?=\n)|[ \t]*--[^\n]*")


@dataclass(frozen=True)
class Token:
    """A lexical token with its offsets in the source text."""

    kind: str
    text: str
    start: int
    end: int

    @property
    def keyword(self) -> Optional[str]:
        """Upper-cased text for bare words, None for anything else."""
        if self.kind == "word":
            return self.text.upper()
        return None

    @property
    def value(self) -> str:
        """Token text with identifier quoting removed."""
        if self.kind == "ident":
            return re.sub(r"\\(.)", r"\1", self.text[1:-1])
        return self.text


def tokenize(text: str) -> List[Token]:
    """Split text into tokens, dropping whitespace and ``--`` comments."""
    tokens = []
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        if kind in ("comment", "space"):
            continue
        tokens.append(Token(kind, match.group(), match.start(), match.end()))
    return tokens


class _Cursor:
    """Position in a token stream with keyword matching helpers."""

    def __init__(self, text: str, tokens: List[Token], source: Optional[str]):
        self.text = text
        self.tokens = tokens
        self.source = source
        self.pos = 0

    @property
    def done(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        if index < len(self.tokens):
            return self.tokens[index]
        return None

    def looking_at(self, *keywords: str) -> bool:
        for offset, keyword in enumerate(keywords):
            token = self.peek(offset)
            if token is None or token.keyword != keyword:
                return False
        return True

    def accept(self, *keywords: str) -> bool:
        if self.looking_at(*keywords):
            self.pos += len(keywords)
            return True
        return False

    def expect(self, *keywords: str) -> None:
        if not self.accept(*keywords):
            self.error(f"Expected {' '.join(keywords)}")

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            self.error("Unexpected end of input")
        self.pos += 1
        return token

    def at_statement_end(self) -> bool:
        token = self.peek()
        return (
            token is None
            or token.kind == "semicolon"
            or token.keyword in _STATEMENT_KEYWORDS
        )

    def name(self, what: str) -> str:
        token = self.peek()
        if token is None or token.kind not in ("word", "ident"):
            self.error(f"Expected {what} name")
        self.pos += 1
        return token.value

    def duration(self) -> str:
        token = self.peek()
        if token is None or token.kind != "word":
            self.error("Expected duration")
        self.pos += 1
        if is_infinite(token.text):
            return INFINITE
        try:
            to_seconds(token.text)
        except ValueError:
            self.error(f"Invalid duration {token.text!r}", token)
        return token.text

    def skip_statement(self) -> None:
        """Move past the current statement, whatever it is."""
        self.pos += 1
        while not self.at_statement_end():
            self.pos += 1

    def span(self, start: int) -> str:
        """
        Source text from token ``start`` up to the last consumed token.

        Layout between tokens is kept, ``--`` comments are left out.
        """
        parts = []
        previous = None
        for token in self.tokens[start:self.pos]:
            if previous is not None:
                parts.append(_GAP_COMMENT.sub("", self.text[previous.end:token.start]))
            parts.append(token.text)
            previous = token
        return "".join(parts)

    def line_of(self, token: Optional[Token]) -> Optional[int]:
        if token is None:
            return None
        return self.text.count("\n", 0, token.start) + 1

    def error(self, message: str, token: Optional[Token] = None) -> None:
        if token is None:
            token = self.peek()
            if token is not None:
                message += f", found {token.text!r}"
            elif self.tokens:
                token = self.tokens[-1]
        raise ParseError(message, source=self.source, line=self.line_of(token))


class _DatabaseBuilder:
    """Working set of retention policies while a database block is parsed."""

    def __init__(self, name: str, create_query: str, initial_policy: RetentionPolicy):
        self.name = name
        self.create_query = create_query
        self.initial_policy = initial_policy
        self.policies: Dict[str, RetentionPolicy] = {initial_policy.name: initial_policy}
        self.default_name: Optional[str] = initial_policy.name

    def put_policy(self, policy: RetentionPolicy, make_default: bool) -> None:
        self.policies[policy.name] = policy
        if make_default:
            self.default_name = policy.name

    def drop_policy(self, name: str) -> None:
        if self.policies.pop(name, None) is None:
            logger.warning(
                f"DROP RETENTION POLICY {name} ON {self.name}: policy was not declared"
            )
        if self.default_name == name:
            self.default_name = None

    def build(self, source: Optional[str]) -> Database:
        if not self.policies:
            raise ParseError(
                f"Database {self.name} has no retention policies left", source=source
            )
        policies = {
            name: replace(policy, is_default=(name == self.default_name))
            for name, policy in self.policies.items()
        }
        return Database(
            name=self.name,
            create_query=self.create_query,
            retention_policies=policies,
            initial_policy=self.initial_policy,
        )


def _parse_create_database(cursor: _Cursor) -> _DatabaseBuilder:
    start = cursor.pos
    cursor.expect("CREATE", "DATABASE")
    name = cursor.name("database")

    policy = RetentionPolicy(
        name=AUTOGEN_POLICY,
        duration=INFINITE,
        shard_duration=AUTOGEN_SHARD_DURATION,
        is_default=True,
    )
    if cursor.accept("WITH"):
        duration = INFINITE
        shard_duration = None
        policy_name = AUTOGEN_POLICY
        while not cursor.at_statement_end():
            if cursor.accept("DURATION"):
                duration = cursor.duration()
            elif cursor.accept("REPLICATION"):
                cursor.advance()
            elif cursor.accept("SHARD", "DURATION"):
                shard_duration = cursor.duration()
            elif cursor.accept("NAME"):
                policy_name = cursor.name("retention policy")
            else:
                cursor.error(f"Unexpected clause in CREATE DATABASE {name}")
        policy = RetentionPolicy(
            name=policy_name,
            duration=duration,
            shard_duration=shard_duration or default_shard_duration(duration),
            is_default=True,
        )

    return _DatabaseBuilder(name, cursor.span(start), policy)


def _parse_create_retention_policy(cursor: _Cursor) -> Tuple[str, RetentionPolicy, bool]:
    cursor.expect("CREATE", "RETENTION", "POLICY")
    name = cursor.name("retention policy")
    cursor.expect("ON")
    database = cursor.name("database")

    duration = None
    shard_duration = None
    make_default = False
    while not cursor.at_statement_end():
        if cursor.accept("DURATION"):
            duration = cursor.duration()
        elif cursor.accept("REPLICATION"):
            cursor.advance()
        elif cursor.accept("SHARD", "DURATION"):
            shard_duration = cursor.duration()
        elif cursor.accept("DEFAULT"):
            make_default = True
        else:
            cursor.error(f"Unexpected clause in CREATE RETENTION POLICY {name}")

    if duration is None:
        cursor.error(f"CREATE RETENTION POLICY {name} ON {database} has no DURATION")

    policy = RetentionPolicy(
        name=name,
        duration=duration,
        shard_duration=shard_duration or default_shard_duration(duration),
        is_default=make_default,
    )
    return database, policy, make_default


def _parse_drop_retention_policy(cursor: _Cursor) -> Tuple[str, str]:
    cursor.expect("DROP", "RETENTION", "POLICY")
    name = cursor.name("retention policy")
    cursor.expect("ON")
    database = cursor.name("database")
    if not cursor.at_statement_end():
        cursor.error(f"Unexpected clause in DROP RETENTION POLICY {name}")
    return database, name


def _parse_create_continuous_query(cursor: _Cursor) -> ContinuousQuery:
    start = cursor.pos
    cursor.expect("CREATE", "CONTINUOUS", "QUERY")
    name = cursor.name("continuous query")
    cursor.expect("ON")
    database = cursor.name("database")

    while not cursor.accept("END"):
        if cursor.done:
            cursor.error(f"CONTINUOUS QUERY {name} ON {database} is missing END")
        cursor.advance()

    return ContinuousQuery(database=database, name=name, definition=cursor.span(start))


def parse_databases(text: str, source: Optional[str] = None) -> Dict[str, Database]:
    """
    Parse database and retention policy declarations.

    Retention policy statements apply to the nearest preceding
    ``CREATE DATABASE`` of the same name. A later declaration of the same
    database or policy replaces the earlier one.

    Args:
        text: Schema definition text
        source: Name of the file the text came from, used in errors

    Returns:
        Mapping of database name to Database

    Raises:
        ParseError: If the text declares no database or is malformed
    """
    cursor = _Cursor(text, tokenize(text), source)
    builders: Dict[str, _DatabaseBuilder] = {}

    while not cursor.done:
        if cursor.looking_at("CREATE", "DATABASE"):
            builder = _parse_create_database(cursor)
            builders[builder.name] = builder
        elif cursor.looking_at("CREATE", "RETENTION", "POLICY"):
            database, policy, make_default = _parse_create_retention_policy(cursor)
            if database in builders:
                builders[database].put_policy(policy, make_default)
            else:
                logger.warning(
                    f"Ignoring retention policy {policy.name}: "
                    f"database {database} is not declared before it"
                    + (f" in {source}" if source else "")
                )
        elif cursor.looking_at("DROP", "RETENTION", "POLICY"):
            database, name = _parse_drop_retention_policy(cursor)
            if database in builders:
                builders[database].drop_policy(name)
            else:
                logger.warning(
                    f"Ignoring DROP RETENTION POLICY {name}: "
                    f"database {database} is not declared before it"
                )
        elif cursor.looking_at("CREATE", "CONTINUOUS", "QUERY"):
            _parse_create_continuous_query(cursor)
        else:
            cursor.skip_statement()
        _skip_semicolons(cursor)

    if not builders:
        raise ParseError("No CREATE DATABASE statement found", source=source)

    return {name: builder.build(source) for name, builder in builders.items()}


def parse_continuous_queries(
    text: str, source: Optional[str] = None
) -> Dict[Tuple[str, str], ContinuousQuery]:
    """
    Parse continuous query declarations.

    Returns:
        Mapping of ``(database, name)`` to ContinuousQuery

    Raises:
        ParseError: If the text declares no continuous query or one is
            not terminated by END
    """
    cursor = _Cursor(text, tokenize(text), source)
    queries: Dict[Tuple[str, str], ContinuousQuery] = {}

    while not cursor.done:
        if cursor.looking_at("CREATE", "CONTINUOUS", "QUERY"):
            query = _parse_create_continuous_query(cursor)
            queries[query.key] = query
        else:
            cursor.advance()

    if not queries:
        raise ParseError("No CREATE CONTINUOUS QUERY statement found", source=source)

    return queries


def _skip_semicolons(cursor: _Cursor) -> None:
    while not cursor.done and cursor.peek().kind == "semicolon":
        cursor.pos += 1
