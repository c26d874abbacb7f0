"""
Plan execution for influxsync.

Applies a change plan to the server strictly in order. Skipped operations
are never sent; the first failing statement aborts the run.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .operations import ChangeOperation
from ..database.connection import InfluxClient
from ..exceptions import QueryError


logger = logging.getLogger(__name__)


@dataclass
class ExecutionReport:
    """Outcome of executing a plan."""

    executed: List[ChangeOperation] = field(default_factory=list)
    skipped: List[ChangeOperation] = field(default_factory=list)
    dryrun: bool = False
    failed: Optional[ChangeOperation] = None
    error: Optional[str] = None
    execution_time_ms: float = 0.0

    @property
    def withheld_deletions(self) -> int:
        """Deletions held back only because ``force`` was not given."""
        if self.dryrun:
            return 0
        return sum(1 for op in self.skipped if op.is_destructive)

    @property
    def success(self) -> bool:
        return self.failed is None


class PlanExecutor:
    """Executes change operations through an InfluxClient."""

    def __init__(self, client: InfluxClient, dryrun: bool = False):
        self.client = client
        self.dryrun = dryrun

    async def execute(self, plan: List[ChangeOperation]) -> ExecutionReport:
        """
        Execute every non-skipped operation in plan order.

        Returns:
            ExecutionReport with executed and skipped operations

        Raises:
            QueryError: On the first failing statement; operations after
                it are not attempted
        """
        report = ExecutionReport(dryrun=self.dryrun)
        start_time = time.time()

        for op in plan:
            if op.skip:
                if op.is_destructive and not self.dryrun:
                    logger.warning(f"Skipping {op.description} (needs --force)")
                else:
                    logger.info(f"Skipping {op.description}")
                report.skipped.append(op)
                continue

            logger.info(f"Executing {op.description}")
            try:
                await self.client.query(op.statement)
            except QueryError as e:
                report.failed = op
                report.error = str(e)
                logger.error(f"Failed to {op.description}: {e}")
                raise
            report.executed.append(op)

        report.execution_time_ms = (time.time() - start_time) * 1000
        return report
