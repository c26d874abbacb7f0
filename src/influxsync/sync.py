"""
Synchronization pipeline for influxsync.

Parse(config) -> Load(live) -> Diff/Plan -> Execute. Parsing and planning
are pure; loading and executing talk to the server through the client held
by a SyncContext, which lives for exactly one run.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from .config import InfluxSyncConfig
from .database.connection import InfluxClient, connect
from .database.introspection import SchemaIntrospector
from .schema.executor import ExecutionReport, PlanExecutor
from .schema.loader import load_desired_state
from .schema.models import SchemaState
from .schema.operations import ChangeOperation
from .schema.planner import build_plan


logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """Settings and server connection shared by every stage of a run."""

    config: InfluxSyncConfig
    client: InfluxClient


@asynccontextmanager
async def open_context(config: InfluxSyncConfig) -> AsyncIterator[SyncContext]:
    """
    Connect to the configured server and yield a SyncContext.

    Raises:
        ConnectivityError: If the URL is invalid or the server does not
            answer the ping
    """
    endpoint = config.get_endpoint()
    async with connect(endpoint, timeout=config.timeout) as client:
        yield SyncContext(config=config, client=client)


@dataclass
class SyncResult:
    """Plan of a run and, unless only diffing, what executing it did."""

    plan: List[ChangeOperation] = field(default_factory=list)
    report: Optional[ExecutionReport] = None

    @property
    def withheld_deletions(self) -> int:
        return self.report.withheld_deletions if self.report else 0


class SchemaSynchronizer:
    """Runs the load, plan and execute stages against one SyncContext."""

    def __init__(self, context: SyncContext):
        self.context = context
        self.introspector = SchemaIntrospector(context.client)
        self.executor = PlanExecutor(context.client, dryrun=context.config.dry_run)

    async def load_observed(self) -> SchemaState:
        return await self.introspector.load_state()

    def plan(self, observed: SchemaState, desired: SchemaState) -> List[ChangeOperation]:
        config = self.context.config
        return build_plan(observed, desired, force=config.force, dryrun=config.dry_run)

    async def apply(self, plan: List[ChangeOperation]) -> ExecutionReport:
        return await self.executor.execute(plan)

    async def run(self, desired: SchemaState, diff_only: bool = False) -> SyncResult:
        observed = await self.load_observed()
        plan = self.plan(observed, desired)
        if diff_only:
            return SyncResult(plan=plan)
        return SyncResult(plan=plan, report=await self.apply(plan))


def load_desired(config: InfluxSyncConfig) -> SchemaState:
    """Parse the schema files the configuration points at."""
    return load_desired_state(
        config.config_dir,
        databases_dir=config.databases_dir,
        continuous_queries_dir=config.continuous_queries_dir,
    )


async def synchronize(config: InfluxSyncConfig, diff_only: bool = False) -> SyncResult:
    """
    Run the whole pipeline once.

    Configuration is parsed before the server is contacted, so an invalid
    schema file never leads to a connection attempt.

    Raises:
        ConfigurationError: If the schema files are missing or invalid
        ConnectivityError: If the server cannot be reached
        QueryError: If any query fails; later operations are not attempted
    """
    desired = load_desired(config)
    async with open_context(config) as context:
        return await SchemaSynchronizer(context).run(desired, diff_only=diff_only)
