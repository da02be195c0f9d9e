#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Copy rows into the partitioned table in batches."""
from django.conf import settings

from partitioner import lifecycle
from partitioner.management.base import PartitionerCommand
from partitioner.tables import Table


class Command(PartitionerCommand):
    help = "Fill the partitions of TABLE in primary key batches."

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("--batch-size", type=int, default=settings.SLICER_BATCH_SIZE, help="Batch size")
        parser.add_argument(
            "--swapped", action="store_true", default=False, help="Fill the swapped table from the retired one"
        )
        parser.add_argument("--source-table", help="Source table")
        parser.add_argument("--dest-table", help="Destination table")
        parser.add_argument("--start", type=int, help="Primary key to start after")
        parser.add_argument("--where", help="Extra condition rows must match")
        parser.add_argument("--sleep", type=float, help="Seconds to sleep between batches")
        parser.add_argument(
            "--use-view", action="store_true", default=False, help="Move retired rows through the transition view"
        )

    def run(
        self,
        introspector,
        runner,
        table,
        batch_size,
        swapped,
        source_table,
        dest_table,
        start,
        where,
        sleep,
        use_view,
        **options,
    ):
        return lifecycle.fill(
            introspector,
            runner,
            table,
            batch_size=batch_size,
            swapped=swapped,
            source_table=Table.parse(source_table, table.schema) if source_table else None,
            dest_table=Table.parse(dest_table, table.schema) if dest_table else None,
            start=start,
            where=where,
            sleep=sleep,
            use_view=use_view,
            view_batch_limit=settings.SLICER_VIEW_BATCH_LIMIT,
        )

    def success_message(self, table, result):
        return f"Filled {table} in {result} batches"
