#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Trigger functions for trigger-based partitioning and view-based transitions."""
import logging
from collections import namedtuple

from .ddl import sql_date
from .periods import advance_date
from .periods import partitioned_dates
from .periods import to_date
from slicer.database import quote_ident
from slicer.database import quote_table


LOG = logging.getLogger(__name__)

CURRENT = "current"
FUTURE = "future"
PAST = "past"

RoutingBranch = namedtuple("RoutingBranch", ["partition", "boundary", "bucket"])


class RoutingTrigger:
    """
    Row-routing function for an inheritance-partitioned table.
    The function body is always rebuilt from the full partition set.
    """

    OUT_OF_RANGE = "Date out of range. Ensure partitions are created."

    def __init__(self, config, base, trigger_name):
        self.config = config
        self.base = base
        self.trigger_name = trigger_name

    @property
    def function_name(self):
        return quote_table(self.base.schema, self.trigger_name)

    def classify(self, boundary, today):
        upper = advance_date(boundary, self.config.period, 1)
        if upper <= today:
            return PAST
        elif boundary <= today:
            return CURRENT
        return FUTURE

    def branches(self, partitions, today):
        """
        Partitions in branch order: current, future ascending, then past descending.
        Params:
            partitions (iterable(Table)) : every partition, duplicates allowed
            today (date/datetime) : reference time
        Returns:
            list(RoutingBranch)
        """
        today = to_date(today)
        unique = {p.name: p for p in partitions}.values()
        buckets = {CURRENT: [], FUTURE: [], PAST: []}
        for partition, boundary in partitioned_dates(unique, self.base.name, self.config.period):
            bucket = self.classify(boundary, today)
            buckets[bucket].append(RoutingBranch(partition, boundary, bucket))

        return buckets[CURRENT] + buckets[FUTURE] + list(reversed(buckets[PAST]))

    def branch_sql(self, branch):
        column = f"NEW.{quote_ident(self.config.column)}"
        cast = self.config.cast
        upper = advance_date(branch.boundary, self.config.period, 1)
        return (
            f"({column} >= {sql_date(branch.boundary, cast)} AND {column} < {sql_date(upper, cast)}) THEN\n"
            f"            INSERT INTO {branch.partition.quoted} VALUES (NEW.*);"
        )

    def function(self, partitions, today):
        """CREATE OR REPLACE statement for the routing function, or None when there are no partitions."""
        branches = self.branches(partitions, today)
        if not branches:
            return None

        LOG.info(f"Routing {len(branches)} partitions through {self.trigger_name}")
        conditions = "\n        ELSIF ".join(self.branch_sql(b) for b in branches)
        return f"""
CREATE OR REPLACE FUNCTION {self.function_name}()
    RETURNS trigger AS $$
    BEGIN
        IF {conditions}
        ELSE
            RAISE EXCEPTION '{self.OUT_OF_RANGE}';
        END IF;
        RETURN NULL;
    END;
    $$ LANGUAGE plpgsql;
""".strip()

    def placeholder(self):
        """Function installed by prep before any partition exists."""
        return f"""
CREATE FUNCTION {self.function_name}()
    RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'Create partitions first.';
    END;
    $$ LANGUAGE plpgsql;
""".strip()

    def create_trigger(self, table):
        return (
            f"CREATE TRIGGER {quote_ident(self.trigger_name)} BEFORE INSERT ON {table.quoted} "
            f"FOR EACH ROW EXECUTE PROCEDURE {self.function_name}();"
        )

    def drop_function(self):
        return f"DROP FUNCTION IF EXISTS {self.function_name}();"


class ViewTrigger:
    """
    INSTEAD OF trigger behind the union view that stands in for the original table
    while rows move from the retired table into the partitioned one.
    """

    TRIGGER_NAME = "partition_trigger"

    def __init__(self, original, live, retired, primary_key, columns, sequence=None):
        self.original = original
        self.live = live
        self.retired = retired
        self.primary_key = primary_key
        self.columns = columns
        self.sequence = sequence

    @property
    def function_name(self):
        return quote_table(self.original.schema, f"{self.original.name}_view_trigger")

    def function(self):
        pk = quote_ident(self.primary_key)
        if self.sequence:
            next_key = f"NEW.{pk} := nextval('{self.sequence.quoted}'::regclass);\n        "
        else:
            next_key = ""
        assignments = ", ".join(f"{quote_ident(c)} = NEW.{quote_ident(c)}" for c in self.columns)
        return f"""
CREATE OR REPLACE FUNCTION {self.function_name}()
    RETURNS trigger
    LANGUAGE plpgsql
AS $$
BEGIN
    IF TG_OP = 'INSERT' THEN
        {next_key}INSERT INTO {self.live.quoted} VALUES (NEW.*);
        RETURN NEW;
    ELSIF TG_OP = 'DELETE' THEN
        DELETE FROM {self.live.quoted} WHERE {pk} = OLD.{pk};
        DELETE FROM {self.retired.quoted} WHERE {pk} = OLD.{pk};
        RETURN OLD;
    ELSE
        DELETE FROM {self.retired.quoted} WHERE {pk} = OLD.{pk};
        IF FOUND THEN
            INSERT INTO {self.live.quoted} VALUES (NEW.*);
        ELSE
            UPDATE {self.live.quoted} SET {assignments}
             WHERE {pk} = OLD.{pk};
        END IF;
        RETURN NEW;
    END IF;
END;
$$;
""".strip()

    def create_view(self):
        return (
            f"CREATE VIEW {self.original.quoted} AS "
            f"SELECT * FROM {self.live.quoted} UNION ALL SELECT * FROM {self.retired.quoted};"
        )

    def create_trigger(self):
        return (
            f"CREATE TRIGGER {quote_ident(self.TRIGGER_NAME)} INSTEAD OF INSERT OR UPDATE OR DELETE "
            f"ON {self.original.quoted} FOR EACH ROW EXECUTE FUNCTION {self.function_name}();"
        )

    def install(self):
        """Function, view and trigger, in creation order."""
        return [self.function(), self.create_view(), self.create_trigger()]

    def drop(self):
        return [f"DROP VIEW {self.original.quoted} CASCADE;", f"DROP FUNCTION {self.function_name}();"]
