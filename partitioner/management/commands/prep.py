#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Create the intermediate table and record its partition settings."""
from django.conf import settings

from partitioner import lifecycle
from partitioner.management.base import PartitionerCommand


class Command(PartitionerCommand):
    help = "Create an intermediate table for TABLE partitioned by COLUMN and PERIOD (day, month or year)."

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("column", nargs="?", help="Routing column")
        parser.add_argument("period", nargs="?", help="Partition period: day, month or year")
        parser.add_argument(
            "--trigger-based",
            action="store_true",
            default=False,
            help="Use inheritance partitions with an insert trigger instead of native partitioning",
        )
        parser.add_argument(
            "--no-partition", action="store_true", default=False, help="Copy the table structure without partitioning"
        )
        parser.add_argument(
            "--format-version",
            type=int,
            default=settings.SLICER_FORMAT_VERSION,
            help="Settings format version for native partitioning",
        )

    def run(self, introspector, runner, table, column, period, trigger_based, no_partition, format_version, **options):
        return lifecycle.prep(
            introspector,
            runner,
            table,
            column=column,
            period=period,
            trigger_based=trigger_based,
            no_partition=no_partition,
            version=format_version,
        )

    def success_message(self, table, result):
        return f"Created {result}"
