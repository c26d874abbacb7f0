"""
Desired state loading for influxsync.

Discovers schema files under the config directory and parses them into a
SchemaState. Files are read in sorted path order; a name declared in more
than one file takes the definition from the last file.
"""

import logging
from pathlib import Path
from typing import Dict, List, Tuple, Union

from .models import INTERNAL_DATABASE, ContinuousQuery, Database, SchemaState
from .parser import parse_continuous_queries, parse_databases
from ..exceptions import ConfigurationError


logger = logging.getLogger(__name__)


def discover_files(directory: Path) -> List[Path]:
    """
    List schema files below a directory, recursively and sorted.

    Hidden files and directories are skipped.

    Raises:
        ConfigurationError: If the directory does not exist
    """
    if not directory.is_dir():
        raise ConfigurationError(f"Config directory not found: {directory}")

    files = []
    for path in sorted(directory.rglob("*")):
        relative = path.relative_to(directory)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            files.append(path)
    return files


def read_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read schema file: {path}", cause=e)


def load_databases(directory: Path) -> Dict[str, Database]:
    """Parse every database file; each must declare at least one database."""
    files = discover_files(directory)
    if not files:
        raise ConfigurationError(f"No database definition files in {directory}")

    databases: Dict[str, Database] = {}
    for path in files:
        parsed = parse_databases(read_file(path), source=str(path))
        for name in parsed:
            if name in databases:
                logger.warning(f"Database {name} redefined in {path}")
        databases.update(parsed)
        logger.debug(f"Read {len(parsed)} databases from {path}")

    if databases.pop(INTERNAL_DATABASE, None) is not None:
        logger.warning(f"Ignoring declaration of reserved database {INTERNAL_DATABASE}")

    return databases


def load_continuous_queries(directory: Path) -> Dict[Tuple[str, str], ContinuousQuery]:
    """Parse every continuous query file; an empty directory means none."""
    queries: Dict[Tuple[str, str], ContinuousQuery] = {}
    for path in discover_files(directory):
        parsed = parse_continuous_queries(read_file(path), source=str(path))
        for database, name in parsed:
            if (database, name) in queries:
                logger.warning(f"Continuous query {name} on {database} redefined in {path}")
        queries.update(parsed)
        logger.debug(f"Read {len(parsed)} continuous queries from {path}")

    for key in [key for key in queries if key[0] == INTERNAL_DATABASE]:
        logger.warning(f"Ignoring continuous query {key[1]} on {INTERNAL_DATABASE}")
        del queries[key]

    return queries


def load_desired_state(
    config_dir: Union[str, Path],
    databases_dir: str = "db",
    continuous_queries_dir: str = "cq",
) -> SchemaState:
    """
    Load the desired state from a config directory.

    Args:
        config_dir: Root config directory
        databases_dir: Subdirectory with database and retention policy files
        continuous_queries_dir: Subdirectory with continuous query files

    Raises:
        ConfigurationError: If a directory is missing or a file is invalid
    """
    root = Path(config_dir)
    if not root.is_dir():
        raise ConfigurationError(f"Config directory not found: {root}")

    databases = load_databases(root / databases_dir)
    queries = load_continuous_queries(root / continuous_queries_dir)

    for database, name in queries:
        if database not in databases:
            logger.warning(
                f"Continuous query {name} targets database {database}, "
                f"which is not declared"
            )

    logger.info(
        f"Loaded {len(databases)} databases and {len(queries)} continuous queries "
        f"from {root}"
    )
    return SchemaState(databases=databases, continuous_queries=queries)
