#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""
Partition lifecycle operations.

Each operation reads the current catalog facts, builds its statements and hands
them to the runner. Nothing is cached between operations.
"""
import logging

from django.utils import timezone

from .ddl import make_fk_def
from .ddl import make_index_def
from .ddl import PartitionDDL
from .exceptions import NotConfigured
from .exceptions import PreconditionFailed
from .fill import BatchFiller
from .fill import DEFAULT_BATCH_SIZE
from .fill import DEFAULT_VIEW_BATCH_LIMIT
from .periods import Period
from .swap import DEFAULT_LOCK_TIMEOUT
from .swap import SwapCoordinator
from .tables import Capability
from .tables import LEGACY_TRIGGER_VERSION
from .tables import PartitionConfig
from .tables import PROPAGATING_VERSION
from .trigger import RoutingTrigger
from slicer.database import quote_ident


LOG = logging.getLogger(__name__)

LIKE_OPTIONS = [
    "INCLUDING DEFAULTS",
    "INCLUDING CONSTRAINTS",
    "INCLUDING STORAGE",
    "INCLUDING COMMENTS",
    "INCLUDING STATISTICS",
]


def assert_table(introspector, table):
    if not introspector.table_exists(table):
        raise PreconditionFailed(f"Table not found: {table}")


def assert_no_table(introspector, table):
    if introspector.table_exists(table):
        raise PreconditionFailed(f"Table already exists: {table}")


def load_settings(introspector, table, trigger_name, intermediate=False):
    """Partition settings of table or NotConfigured."""
    config = introspector.fetch_settings(table, trigger_name)
    if config is None:
        message = f"No settings found: {table}. Run prep first."
        if not intermediate:
            message = f"{message}\nDid you mean to use --intermediate?"
        raise NotConfigured(message)
    return config


def prep(
    introspector,
    runner,
    table,
    column=None,
    period=None,
    trigger_based=False,
    no_partition=False,
    version=PROPAGATING_VERSION,
):
    """
    Create the intermediate table for table and record its partition settings.
    Params:
        table (Table) : table to partition
        column (str) : routing column
        period (str/Period) : day, month or year
        trigger_based (bool) : inheritance partitions routed by a trigger
        no_partition (bool) : plain copy of the table, no partitioning
        version (int) : settings format version for native partitioning
    Returns:
        Table : the intermediate table
    """
    if no_partition:
        if column or period:
            raise PreconditionFailed("Column and period cannot be used with --no-partition")
        if trigger_based:
            raise PreconditionFailed("--trigger-based cannot be used with --no-partition")
    elif not (column and period):
        raise PreconditionFailed("Column and period are required unless --no-partition is used")

    intermediate_table = table.intermediate_table
    assert_table(introspector, table)
    assert_no_table(introspector, intermediate_table)

    config = None
    if not no_partition:
        try:
            period = Period(str(period))
        except ValueError:
            raise PreconditionFailed(f"Invalid period: {period}")
        cast = introspector.column_cast(table, column)
        if cast is None:
            raise PreconditionFailed(f"Column not found: {column}")
        if trigger_based:
            config = PartitionConfig(period, column, cast, declarative=False, version=LEGACY_TRIGGER_VERSION)
        else:
            config = PartitionConfig(period, column, cast, declarative=True, version=version)

    statements = []
    if config and config.declarative:
        like_options = list(LIKE_OPTIONS)
        if introspector.supports_generated_columns():
            like_options.append("INCLUDING GENERATED")
        statements.append(
            f"CREATE TABLE {intermediate_table.quoted} (LIKE {table.quoted} {' '.join(like_options)}) "
            f"PARTITION BY RANGE ({quote_ident(config.column)});"
        )
        # indexes and foreign keys on the parent propagate to every partition
        if config.capability is Capability.NATIVE:
            index_defs = (make_index_def(i, intermediate_table) for i in introspector.index_defs(table))
            statements.extend(i for i in index_defs if i)
            statements.extend(make_fk_def(fk, intermediate_table) for fk in introspector.foreign_keys(table))
        statements.append(config.comment_on_table(intermediate_table))
    else:
        statements.append(f"CREATE TABLE {intermediate_table.quoted} (LIKE {table.quoted} INCLUDING ALL);")
        statements.extend(make_fk_def(fk, intermediate_table) for fk in introspector.foreign_keys(table))

    if config and not config.declarative:
        routing = RoutingTrigger(config, table, table.trigger_name)
        statements.append(routing.placeholder())
        statements.append(routing.create_trigger(intermediate_table))
        statements.append(config.comment_on_trigger(table.trigger_name, intermediate_table))

    LOG.info(f"Preparing {intermediate_table}")
    runner.run(statements)
    return intermediate_table


def unprep(introspector, runner, table):
    """Drop the intermediate table and any routing function prep created."""
    intermediate_table = table.intermediate_table
    assert_table(introspector, intermediate_table)

    routing = RoutingTrigger(None, table, table.trigger_name)
    LOG.info(f"Dropping {intermediate_table}")
    runner.run([f"DROP TABLE {intermediate_table.quoted} CASCADE;", routing.drop_function()])


def add_partitions(
    introspector,
    runner,
    table,
    intermediate=False,
    past=0,
    future=0,
    tablespace="",
    use_view=False,
    today=None,
):
    """
    Create the missing partitions for [-past, future] periods around today.
    Trigger-based tables get their routing function rebuilt from the full partition set.
    With intermediate and use_view the original table is also replaced by a transition view.
    Returns:
        list(Table) : partitions created
    """
    if use_view and not intermediate:
        raise PreconditionFailed("--use-view requires --intermediate")

    today = today or timezone.now()
    original_table = table
    parent = original_table.intermediate_table if intermediate else original_table
    assert_table(introspector, parent)

    config = load_settings(introspector, parent, original_table.trigger_name, intermediate)
    capability = config.capability

    if capability is Capability.TRIGGER:
        schema_table = parent
    elif intermediate:
        schema_table = original_table
    else:
        partitions = introspector.partitions(parent)
        schema_table = partitions[-1] if partitions else parent

    if capability is Capability.NATIVE:
        index_defs = []
        fk_defs = []
    else:
        index_defs = introspector.index_defs(schema_table)
        fk_defs = introspector.foreign_keys(schema_table)
    primary_key = introspector.primary_key(schema_table)

    ddl = PartitionDDL(config, parent, original_table, tablespace)
    added, statements = ddl.add_partitions(
        today, past, future, introspector.table_exists, primary_key, index_defs, fk_defs
    )

    if capability is Capability.TRIGGER:
        routing = RoutingTrigger(config, original_table, original_table.trigger_name)
        function = routing.function(introspector.partitions(parent) + added, today)
        if function:
            statements.append(function)

    if use_view:
        statements.extend(SwapCoordinator(introspector).setup_view(original_table))

    LOG.info(f"Adding {len(added)} partitions to {parent}")
    runner.run(statements)
    return added


def fill(
    introspector,
    runner,
    table,
    batch_size=DEFAULT_BATCH_SIZE,
    swapped=False,
    source_table=None,
    dest_table=None,
    start=None,
    where=None,
    sleep=None,
    use_view=False,
    view_batch_limit=DEFAULT_VIEW_BATCH_LIMIT,
):
    """Copy rows in batches; see BatchFiller.fill."""
    filler = BatchFiller(introspector, runner)
    return filler.fill(
        table,
        source_table=source_table,
        dest_table=dest_table,
        swapped=swapped,
        use_view=use_view,
        batch_size=batch_size,
        start=start,
        where=where,
        sleep=sleep,
        view_batch_limit=view_batch_limit,
    )


def swap(introspector, runner, table, lock_timeout=DEFAULT_LOCK_TIMEOUT, use_view=False):
    """Promote the intermediate table to table in one transaction."""
    coordinator = SwapCoordinator(introspector, lock_timeout)
    statements = coordinator.swap_view(table) if use_view else coordinator.swap(table)
    runner.run(statements)


def unswap(introspector, runner, table, lock_timeout=DEFAULT_LOCK_TIMEOUT, use_view=False):
    """Undo swap in one transaction."""
    coordinator = SwapCoordinator(introspector, lock_timeout)
    statements = coordinator.unswap_view(table) if use_view else coordinator.unswap(table)
    runner.run(statements)


def analyze(introspector, runner, table, swapped=False):
    """Refresh planner statistics of every partition and their parent."""
    parent = table if swapped else table.intermediate_table
    assert_table(introspector, parent)

    tables = introspector.partitions(parent) + [parent]
    LOG.info(f"Analyzing {len(tables)} tables")
    runner.run([f"ANALYZE VERBOSE {t.quoted};" for t in tables], atomic=False)
