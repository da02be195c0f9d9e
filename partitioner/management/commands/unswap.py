#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Restore the retired table."""
from django.conf import settings

from partitioner import lifecycle
from partitioner.management.base import PartitionerCommand


class Command(PartitionerCommand):
    help = "Undo swap: put the retired table of TABLE back into place."

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("--lock-timeout", default=settings.SLICER_LOCK_TIMEOUT, help="Lock timeout")
        parser.add_argument(
            "--use-view", action="store_true", default=False, help="Operate on the view based transition"
        )

    def run(self, introspector, runner, table, lock_timeout, use_view, **options):
        lifecycle.unswap(introspector, runner, table, lock_timeout=lock_timeout, use_view=use_view)

    def success_message(self, table, result):
        return f"Unswapped {table}"
