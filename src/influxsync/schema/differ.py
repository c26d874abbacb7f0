"""
Entity differ for influxsync.

Compares observed and desired objects of each kind and turns the
differences into ChangeOperations. Ordering across kinds and the safety
flags are the planner's business; everything returned here is in
ascending key order.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Mapping, Tuple

from .models import ContinuousQuery, Database, RetentionPolicy
from .operations import (
    Action,
    ChangeOperation,
    ObjectKind,
    alter_retention_policy_statement,
    create_database_statement,
    create_retention_policy_statement,
    drop_continuous_query_statement,
    drop_database_statement,
    drop_retention_policy_statement,
    replace_continuous_query_statement,
)
from .reconciler import reconcile_keys


logger = logging.getLogger(__name__)


@dataclass
class PolicyDiff:
    """Retention policy changes for one database."""

    database: str
    deletes: List[ChangeOperation] = field(default_factory=list)
    creates: List[ChangeOperation] = field(default_factory=list)
    updates: List[ChangeOperation] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)


@dataclass
class DatabaseDiff:
    """Database changes plus the policy changes of every surviving database."""

    deletes: List[ChangeOperation] = field(default_factory=list)
    creates: List[ChangeOperation] = field(default_factory=list)
    policy_diffs: List[PolicyDiff] = field(default_factory=list)


@dataclass
class QueryDiff:
    """Continuous query changes.

    ``upserts`` holds updates and creations together, in key order.
    """

    deletes: List[ChangeOperation] = field(default_factory=list)
    upserts: List[ChangeOperation] = field(default_factory=list)
    unchanged: List[Tuple[str, str]] = field(default_factory=list)


def diff_retention_policies(
    database: str,
    observed: Mapping[str, RetentionPolicy],
    desired: Mapping[str, RetentionPolicy],
) -> PolicyDiff:
    """Compare the retention policies of one database."""
    partition = reconcile_keys(observed, desired)
    result = PolicyDiff(database=database)

    for name in partition.only_observed:
        result.deletes.append(ChangeOperation(
            action=Action.DELETE,
            object_kind=ObjectKind.RETENTION_POLICY,
            database=database,
            name=name,
            statement=drop_retention_policy_statement(database, name),
        ))

    for name in partition.in_both:
        if observed[name] == desired[name]:
            result.unchanged.append(name)
            continue
        logger.debug(
            f"Retention policy {name} on {database} drifted: "
            f"{observed[name]} -> {desired[name]}"
        )
        result.updates.append(ChangeOperation(
            action=Action.UPDATE,
            object_kind=ObjectKind.RETENTION_POLICY,
            database=database,
            name=name,
            statement=alter_retention_policy_statement(database, desired[name]),
        ))

    for name in partition.only_desired:
        result.creates.append(ChangeOperation(
            action=Action.CREATE,
            object_kind=ObjectKind.RETENTION_POLICY,
            database=database,
            name=name,
            statement=create_retention_policy_statement(database, desired[name]),
        ))

    return result


def diff_databases(
    observed: Mapping[str, Database],
    desired: Mapping[str, Database],
) -> DatabaseDiff:
    """
    Compare databases and recurse into the retention policies of the ones
    that will exist afterwards.

    A database that is about to be created is compared against the single
    retention policy its creation statement makes, so extra policies and
    a moved default show up as policy changes.
    """
    partition = reconcile_keys(observed, desired)
    result = DatabaseDiff()

    for name in partition.only_observed:
        result.deletes.append(ChangeOperation(
            action=Action.DELETE,
            object_kind=ObjectKind.DATABASE,
            database=name,
            name=name,
            statement=drop_database_statement(name),
        ))

    for name in partition.only_desired:
        result.creates.append(ChangeOperation(
            action=Action.CREATE,
            object_kind=ObjectKind.DATABASE,
            database=name,
            name=name,
            statement=create_database_statement(desired[name]),
        ))

    created = set(partition.only_desired)
    for name in sorted(partition.in_both + partition.only_desired):
        target = desired[name]
        if name in created:
            initial = target.initial_policy
            current = {initial.name: initial} if initial else {}
        else:
            current = observed[name].retention_policies

        policy_diff = diff_retention_policies(name, current, target.retention_policies)
        if name in created and target.initial_policy is not None:
            _drop_implied_default_change(policy_diff, target.initial_policy, target)
        if name in created and policy_diff.deletes:
            # The database does not exist yet when deletions run.
            logger.warning(
                f"Not dropping retention policy "
                f"{', '.join(op.name for op in policy_diff.deletes)} of new database "
                f"{name} in this run; it will be dropped on the next one"
            )
            policy_diff.deletes = []
        result.policy_diffs.append(policy_diff)

    return result


def _drop_implied_default_change(
    policy_diff: PolicyDiff, initial: RetentionPolicy, target: Database
) -> None:
    """
    Leave out the update that only takes the default flag off the initial
    policy of a new database when a policy created with it becomes default.
    """
    default = target.default_policy
    if default is None or default.name not in {op.name for op in policy_diff.creates}:
        return
    declared = target.retention_policies.get(initial.name)
    if declared is None or replace(declared, is_default=initial.is_default) != initial:
        return
    remaining = [op for op in policy_diff.updates if op.name != initial.name]
    if len(remaining) < len(policy_diff.updates):
        policy_diff.updates = remaining
        policy_diff.unchanged = sorted(policy_diff.unchanged + [initial.name])


def diff_continuous_queries(
    observed: Mapping[Tuple[str, str], ContinuousQuery],
    desired: Mapping[Tuple[str, str], ContinuousQuery],
) -> QueryDiff:
    """
    Compare continuous queries keyed by ``(database, name)``.

    InfluxDB cannot alter a continuous query, so drift is planned as a
    drop followed by the desired creation statement.
    """
    partition = reconcile_keys(observed, desired)
    result = QueryDiff()

    for database, name in partition.only_observed:
        result.deletes.append(ChangeOperation(
            action=Action.DELETE,
            object_kind=ObjectKind.CONTINUOUS_QUERY,
            database=database,
            name=name,
            statement=drop_continuous_query_statement(database, name),
        ))

    changed = {}
    for key in partition.in_both:
        if observed[key] == desired[key]:
            result.unchanged.append(key)
            continue
        changed[key] = ChangeOperation(
            action=Action.UPDATE,
            object_kind=ObjectKind.CONTINUOUS_QUERY,
            database=key[0],
            name=key[1],
            statement=replace_continuous_query_statement(desired[key]),
        )

    for key in partition.only_desired:
        changed[key] = ChangeOperation(
            action=Action.CREATE,
            object_kind=ObjectKind.CONTINUOUS_QUERY,
            database=key[0],
            name=key[1],
            statement=desired[key].definition,
        )

    result.upserts = [changed[key] for key in sorted(changed)]
    return result
