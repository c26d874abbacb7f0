"""
Change plan builder for influxsync.

Merges the per-kind diffs into one list whose order keeps the server valid
at every step:

1. continuous query deletions (reverse discovery order)
2. retention policy deletions (databases and policies descending)
3. database deletions (descending)
4. database creations (ascending)
5. retention policy creations (ascending)
6. retention policy updates (ascending)
7. continuous query updates and creations (ascending)

Continuous queries go away before the policies and databases they write
into, and come back only once the structure they need exists.
"""

import logging
from collections import Counter
from dataclasses import replace
from typing import List

from .differ import diff_continuous_queries, diff_databases
from .models import SchemaState
from .operations import ChangeOperation, compute_skip


logger = logging.getLogger(__name__)


def build_plan(
    observed: SchemaState,
    desired: SchemaState,
    force: bool = False,
    dryrun: bool = False,
) -> List[ChangeOperation]:
    """
    Build the ordered list of operations turning ``observed`` into ``desired``.

    Every operation carries ``skip`` computed from ``force`` and ``dryrun``;
    skipped operations stay in the plan so they can be shown.

    Args:
        observed: State read from the server
        desired: State parsed from configuration files
        force: Allow delete operations to run
        dryrun: Hold back every operation

    Returns:
        Ordered list of ChangeOperation
    """
    databases = diff_databases(observed.databases, desired.databases)
    queries = diff_continuous_queries(
        observed.continuous_queries, desired.continuous_queries
    )

    plan: List[ChangeOperation] = []
    plan.extend(reversed(queries.deletes))
    for policy_diff in reversed(databases.policy_diffs):
        plan.extend(reversed(policy_diff.deletes))
    plan.extend(reversed(databases.deletes))
    plan.extend(databases.creates)
    for policy_diff in databases.policy_diffs:
        plan.extend(policy_diff.creates)
    for policy_diff in databases.policy_diffs:
        plan.extend(policy_diff.updates)
    plan.extend(queries.upserts)

    plan = [
        replace(op, skip=compute_skip(op.action, force=force, dryrun=dryrun))
        for op in plan
    ]

    if plan:
        counts = Counter(op.action.value for op in plan)
        logger.info(
            f"Planned {len(plan)} operations "
            f"({', '.join(f'{n} {action}' for action, n in sorted(counts.items()))})"
        )
    else:
        logger.info("No changes needed")
    for op in plan:
        logger.debug(f"{'SKIP ' if op.skip else ''}{op.description}: {op.statement}")

    return plan
