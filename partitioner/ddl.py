#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Statements that materialize range partitions."""
import logging
import re

from .periods import advance_date
from .periods import partition_name
from .periods import round_date
from .tables import CAST_TIMESTAMPTZ
from .tables import Capability
from .tables import Table
from slicer.database import quote_ident


LOG = logging.getLogger(__name__)

INDEX_PARSER = re.compile("(^.+INDEX )(.+)( ON )(.+)( USING.+$)", flags=re.IGNORECASE)


def sql_date(day, cast, add_cast=True):
    """
    Boundary literal for a partition predicate or bound.
    Params:
        day (date) : boundary
        cast (str) : "date" or "timestamptz"
        add_cast (bool) : append an explicit cast so the literal matches the column type
    """
    fmt = "%Y-%m-%d 00:00:00 UTC" if cast == CAST_TIMESTAMPTZ else "%Y-%m-%d"
    literal = f"'{day.strftime(fmt)}'"
    return f"{literal}::{cast}" if add_cast else literal


def make_index_def(index_def, table):
    """
    Rewrite an index definition (pg_get_indexdef) to target table.
    The index name is dropped so the database picks a unique one per partition.
    """
    index_parts = INDEX_PARSER.findall(index_def.rstrip(" ;"))
    if not index_parts:
        LOG.error(f"ERROR parsing index definition [[ {index_def} ]]")
        return None

    head, _, on, _, using = index_parts[0]
    return f"{head}{on.lstrip()}{table.quoted}{using};"


def make_fk_def(fk_def, table):
    return f"ALTER TABLE {table.quoted} ADD {fk_def};"


def make_pk_def(primary_key, table):
    columns = ", ".join(quote_ident(c) for c in primary_key)
    return f"ALTER TABLE {table.quoted} ADD PRIMARY KEY ({columns});"


class PartitionDDL:
    """
    Build the statements that create partitions of parent for a partition config.
    Partition names are derived from base, the table the operator named.
    """

    def __init__(self, config, parent, base, tablespace=""):
        self.config = config
        self.parent = parent
        self.base = base
        self.tablespace = tablespace or ""

    @property
    def tablespace_clause(self):
        return f" TABLESPACE {quote_ident(self.tablespace)}" if self.tablespace else ""

    def boundaries(self, today, past, future):
        """Boundaries for n in [-past, future] periods around today."""
        if past < 0 or future < 0:
            raise ValueError("past and future must not be negative")

        period = self.config.period
        current = round_date(today, period)
        return [advance_date(current, period, n) for n in range(-past, future + 1)]

    def partition_for(self, boundary):
        return Table(self.base.schema, partition_name(self.base.name, self.config.period, boundary))

    def create_partition(self, boundary, primary_key=(), index_defs=(), fk_defs=()):
        """
        Statements creating the partition for boundary.
        Returns:
            tuple(Table, list(str))
        """
        capability = self.config.capability
        column = quote_ident(self.config.column)
        cast = self.config.cast
        upper = advance_date(boundary, self.config.period, 1)
        partition = self.partition_for(boundary)

        if capability is Capability.TRIGGER:
            statements = [
                f"""
CREATE TABLE {partition.quoted}
    (CHECK ({column} >= {sql_date(boundary, cast)} AND {column} < {sql_date(upper, cast)}))
    INHERITS ({self.parent.quoted}){self.tablespace_clause};
""".strip()
            ]
            replicate = True
        else:
            lower_bound = sql_date(boundary, cast, add_cast=False)
            upper_bound = sql_date(upper, cast, add_cast=False)
            statements = [
                f"CREATE TABLE {partition.quoted} PARTITION OF {self.parent.quoted} "
                f"FOR VALUES FROM ({lower_bound}) TO ({upper_bound}){self.tablespace_clause};"
            ]
            replicate = capability is Capability.NATIVE_UNPROPAGATED

        if primary_key:
            statements.append(make_pk_def(primary_key, partition))

        if replicate:
            statements.extend(s for s in (make_index_def(i, partition) for i in index_defs) if s)
            statements.extend(make_fk_def(fk, partition) for fk in fk_defs)

        return partition, statements

    def add_partitions(self, today, past, future, exists, primary_key=(), index_defs=(), fk_defs=()):
        """
        Statements for every missing partition in the requested range.
        Params:
            today (date/datetime) : reference time
            past (int) : number of periods before today
            future (int) : number of periods after today
            exists (callable) : exists(Table) -> bool
            primary_key (list(str)) : primary key columns to replicate
            index_defs (list(str)) : index definitions to replicate when needed
            fk_defs (list(str)) : foreign key definitions to replicate when needed
        Returns:
            tuple(list(Table), list(str)) : added partitions and their statements
        """
        added = []
        statements = []
        for boundary in self.boundaries(today, past, future):
            partition = self.partition_for(boundary)
            if exists(partition):
                LOG.info(f"Partition {partition} already exists")
                continue

            LOG.info(f"Creating partition {partition}")
            partition, partition_statements = self.create_partition(boundary, primary_key, index_defs, fk_defs)
            added.append(partition)
            statements.extend(partition_statements)

        return added, statements
