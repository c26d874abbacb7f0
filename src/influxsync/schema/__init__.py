"""
Schema management package for influxsync.

This package provides:
- Schema entities and their normalization rules
- Parsing of schema definition files
- Ordered set reconciliation and per-kind diffing
- Change plan building and execution
"""

from .models import Database, RetentionPolicy, ContinuousQuery, SchemaState, to_seconds, normalize_query
from .parser import parse_databases, parse_continuous_queries
from .reconciler import reconcile_keys, KeyPartition
from .operations import ChangeOperation, Action, ObjectKind, compute_skip
from .planner import build_plan
from .loader import load_desired_state
from .executor import PlanExecutor, ExecutionReport

__all__ = [
    "Database",
    "RetentionPolicy",
    "ContinuousQuery",
    "SchemaState",
    "to_seconds",
    "normalize_query",
    "parse_databases",
    "parse_continuous_queries",
    "reconcile_keys",
    "KeyPartition",
    "ChangeOperation",
    "Action",
    "ObjectKind",
    "compute_skip",
    "build_plan",
    "load_desired_state",
    "PlanExecutor",
    "ExecutionReport",
]
