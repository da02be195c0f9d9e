#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Create partitions around today."""
from django.utils import timezone

from partitioner import lifecycle
from partitioner.management.base import PartitionerCommand


class Command(PartitionerCommand):
    help = "Add partitions to TABLE (or its intermediate table) for past and future periods."

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument(
            "--intermediate", action="store_true", default=False, help="Add to the intermediate table"
        )
        parser.add_argument("--past", type=int, default=0, help="Number of past partitions to add")
        parser.add_argument("--future", type=int, default=0, help="Number of future partitions to add")
        parser.add_argument("--tablespace", default="", help="Tablespace for the new partitions")
        parser.add_argument(
            "--use-view",
            action="store_true",
            default=False,
            help="Replace TABLE with a view over the intermediate and retired tables",
        )

    def run(self, introspector, runner, table, intermediate, past, future, tablespace, use_view, **options):
        return lifecycle.add_partitions(
            introspector,
            runner,
            table,
            intermediate=intermediate,
            past=past,
            future=future,
            tablespace=tablespace,
            use_view=use_view,
            today=timezone.now(),
        )

    def success_message(self, table, result):
        return f"Added {len(result)} partitions"
