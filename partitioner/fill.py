#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Copy rows between tables in primary key ordered batches."""
import logging
import math
import time
from dataclasses import dataclass
from decimal import Decimal

from .ddl import sql_date
from .exceptions import PreconditionFailed
from .exceptions import UnsupportedKeyType
from .periods import advance_date
from .periods import partitioned_dates
from slicer.database import quote_ident


LOG = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10000
DEFAULT_VIEW_BATCH_LIMIT = 10000


@dataclass
class BatchCursor:
    """Key range still to be copied, (start, end], walked in steps of batch_size."""

    start: int
    end: int
    batch_size: int
    window: tuple = None
    where: str = None

    @property
    def batch_count(self):
        if self.start >= self.end:
            return 0
        return math.ceil((self.end - self.start) / self.batch_size)

    def batches(self):
        lower = self.start
        while lower < self.end:
            yield lower, lower + self.batch_size
            lower += self.batch_size


def is_numeric_key(value):
    return isinstance(value, (int, Decimal)) and not isinstance(value, bool)


class BatchFiller:
    """
    Fill a destination table from a source table without holding long locks.
    Params:
        introspector (CatalogIntrospector) : catalog facts
        runner (StatementRunner) : statement execution
        sleep (callable) : used to pause between batches
    """

    def __init__(self, introspector, runner, sleep=time.sleep):
        self.introspector = introspector
        self.runner = runner
        self.sleep = sleep

    def resolve_tables(self, table, source_table=None, dest_table=None, swapped=False, use_view=False):
        if swapped:
            return source_table or table.retired_table, dest_table or table
        elif use_view:
            return table.retired_table, dest_table or table
        return source_table or table, dest_table or table.intermediate_table

    def check_tables(self, source_table, dest_table, use_view=False):
        if not self.introspector.table_exists(source_table):
            raise PreconditionFailed(f"Table not found: {source_table}")
        if use_view:
            if not self.introspector.view_exists(dest_table):
                raise PreconditionFailed(f"View not found: {dest_table}")
        elif not self.introspector.table_exists(dest_table):
            raise PreconditionFailed(f"Table not found: {dest_table}")

    def period_window(self, config, partitions, base):
        """[first boundary, end of the last partition) or None when nothing is partitioned yet."""
        dated = partitioned_dates(partitions, base.name, config.period)
        if not dated:
            return None
        return dated[0][1], advance_date(dated[-1][1], config.period, 1)

    def primary_key(self, table, partitions, from_partition):
        """First primary key column of the last partition (native) or of table."""
        schema_table = partitions[-1] if partitions and from_partition else table
        primary_key = self.introspector.primary_key(schema_table)
        if not primary_key:
            raise PreconditionFailed(f"No primary key: {schema_table}")
        return primary_key[0]

    def fill(
        self,
        table,
        source_table=None,
        dest_table=None,
        swapped=False,
        use_view=False,
        batch_size=DEFAULT_BATCH_SIZE,
        start=None,
        where=None,
        sleep=None,
        view_batch_limit=DEFAULT_VIEW_BATCH_LIMIT,
    ):
        """
        Copy rows of the source table that the destination does not have yet.
        Rerunning after a failure resumes from the destination's largest key.
        Params:
            table (Table) : table the operator named
            source_table, dest_table (Table) : override the default direction
            swapped (bool) : copy retired -> original after a swap
            use_view (bool) : move retired rows through the transition view
            batch_size (int) : keys per batch
            start (int) : key to start after instead of the resume point
            where (str) : extra SQL predicate applied to every batch
            sleep (float) : seconds to pause between batches
            view_batch_limit (int) : rows touched per statement in view mode
        Returns:
            int : number of batches issued
        """
        if batch_size < 1:
            raise ValueError("batch_size must be positive")

        source_table, dest_table = self.resolve_tables(table, source_table, dest_table, swapped, use_view)
        self.check_tables(source_table, dest_table, use_view)

        config = self.introspector.fetch_settings(dest_table, table.trigger_name)
        partitioned_table = table.intermediate_table if use_view else dest_table
        partitions = self.introspector.partitions(partitioned_table) if config or use_view else []
        window = self.period_window(config, partitions, table) if config else None

        from_partition = use_view or bool(config and config.declarative)
        primary_key = self.primary_key(table, partitions, from_partition)

        max_source_id = self.introspector.max_id(source_table, primary_key, where=where)
        if not is_numeric_key(max_source_id):
            raise UnsupportedKeyType(f'Only numeric primary keys are supported ("{primary_key}" of {source_table})')

        if use_view:
            return self.replicate_view(source_table, dest_table, primary_key, view_batch_limit)

        if start is not None:
            starting_id = start
        elif swapped:
            starting_id = self.introspector.max_id(dest_table, primary_key, where=where, below=max_source_id)
        else:
            starting_id = self.introspector.max_id(dest_table, primary_key, where=where)

        if starting_id == 0 and not swapped:
            if window:
                min_source_id = self.introspector.min_id(
                    source_table, primary_key, config.column, config.cast, window[0], where
                )
            else:
                min_source_id = self.introspector.min_id(source_table, primary_key, where=where)
            starting_id = min_source_id - 1

        cursor = BatchCursor(starting_id, max_source_id, batch_size, window, where)
        return self.copy_batches(source_table, dest_table, primary_key, cursor, config, sleep)

    def batch_sql(self, source_table, dest_table, primary_key, lower, upper, cursor, config, label):
        pk = quote_ident(primary_key)
        conditions = [f"{pk} > {lower}", f"{pk} <= {upper}"]
        if cursor.window:
            column = quote_ident(config.column)
            starting_time, ending_time = cursor.window
            conditions.append(f"{column} >= {sql_date(starting_time, config.cast)}")
            conditions.append(f"{column} < {sql_date(ending_time, config.cast)}")
        if cursor.where:
            conditions.append(f"({cursor.where})")

        fields = ", ".join(quote_ident(c) for c in self.introspector.columns(source_table))
        return f"""
/* {label} */
INSERT INTO {dest_table.quoted} ({fields})
    SELECT {fields} FROM {source_table.quoted}
    WHERE {" AND ".join(conditions)}
""".strip()

    def copy_batches(self, source_table, dest_table, primary_key, cursor, config, sleep=None):
        batch_count = cursor.batch_count
        if batch_count == 0:
            LOG.info(f"Nothing to fill from {source_table} into {dest_table}")
            self.runner.log_sql("/* nothing to fill */")
            return 0

        LOG.info(f"Filling {dest_table} from {source_table} in {batch_count} batches of {cursor.batch_size}")
        for i, (lower, upper) in enumerate(cursor.batches(), start=1):
            sql = self.batch_sql(
                source_table, dest_table, primary_key, lower, upper, cursor, config, f"{i} of {batch_count}"
            )
            self.runner.run([sql], atomic=False)
            if sleep and upper < cursor.end:
                self.sleep(sleep)

        return batch_count

    def replicate_view(self, source_table, dest_view, primary_key, limit=DEFAULT_VIEW_BATCH_LIMIT):
        """
        Touch rows still in the retired table through the view until none remain.
        The view trigger moves each touched row into the partitioned table.
        Returns:
            int : number of statements that moved rows
        """
        pk = quote_ident(primary_key)
        sql = f"""
WITH old_ids AS (
    SELECT {pk} FROM {source_table.quoted} LIMIT {limit}
),
moved AS (
    UPDATE {dest_view.quoted} SET {pk} = {pk}
     WHERE {pk} IN (SELECT {pk} FROM old_ids)
    RETURNING 1
)
SELECT COUNT(*) FROM moved;
""".strip()
        batches = 0
        while True:
            rows_done = self.runner.query_value(sql)
            if not rows_done:
                break
            batches += 1
            LOG.info(f"Moved {rows_done} rows from {source_table} through {dest_view}")
        return batches
