#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
import io
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase
from django.utils import timezone

from partitioner import lifecycle
from partitioner.management.base import PartitionerCommand
from partitioner.tables import Table
from partitioner.test.fakes import FakeDatabase


POSTS = Table("public", "posts")
COLUMNS = {"id": "bigint", "title": "text", "createdAt": "date"}


class TestCommands(SimpleTestCase):
    def setUp(self):
        self.now = timezone.now()
        rows = [{"id": k, "title": f"post {k}", "createdAt": self.now.date()} for k in range(1, 6)]
        self.db = FakeDatabase()
        self.db.create_table(POSTS, COLUMNS, rows=rows, sequence="posts_id_seq")

    def call(self, name, *args):
        """Run a management command against the fake database and return its output."""
        db = self.db
        output = io.StringIO()

        def get_runner(command, dry_run):
            return db.runner(dry_run=dry_run, output=command.stdout)

        with patch.object(PartitionerCommand, "get_introspector", autospec=True, return_value=db), patch.object(
            PartitionerCommand, "get_runner", autospec=True, side_effect=get_runner
        ):
            call_command(name, *args, stdout=output)
        return output.getvalue()

    def prepare(self):
        runner = self.db.runner()
        lifecycle.prep(self.db, runner, POSTS, "createdAt", "month")
        lifecycle.add_partitions(self.db, runner, POSTS, intermediate=True, today=self.now)

    def test_prep(self):
        """Test prep reports the intermediate table."""
        output = self.call("prep", "posts", "createdAt", "month")
        self.assertIn("Created public.posts_intermediate", output)
        self.assertTrue(self.db.table_exists(POSTS.intermediate_table))

    def test_prep_trigger_based(self):
        """Test the trigger based flag reaches prep."""
        self.call("prep", "public.posts", "createdAt", "day", "--trigger-based")
        self.assertIn("posts_insert_trigger", self.db.relation(POSTS.intermediate_table).triggers)

    def test_prep_dry_run(self):
        """Test a dry run prints the statements and reports no success."""
        output = self.call("prep", "posts", "createdAt", "month", "--dry-run")
        self.assertIn("/* dry run */", output)
        self.assertIn('CREATE TABLE "public"."posts_intermediate"', output)
        self.assertNotIn("Created", output)
        self.assertFalse(self.db.table_exists(POSTS.intermediate_table))

    def test_prep_errors(self):
        """Test lifecycle errors surface as command errors."""
        with self.assertLogs("partitioner.management.base", level="ERROR"):
            with self.assertRaisesRegex(CommandError, "Column and period are required"):
                self.call("prep", "posts")
        with self.assertRaisesRegex(CommandError, "Invalid period: week"):
            self.call("prep", "posts", "createdAt", "week")

    def test_unprep(self):
        """Test unprep reports the dropped table."""
        self.prepare()
        output = self.call("unprep", "posts")
        self.assertIn("Dropped public.posts_intermediate", output)
        self.assertFalse(self.db.table_exists(POSTS.intermediate_table))

    def test_add_partitions(self):
        """Test add_partitions counts the partitions it created."""
        self.call("prep", "posts", "createdAt", "month")
        output = self.call("add_partitions", "posts", "--intermediate", "--past", "1", "--future", "2")
        self.assertIn("Added 4 partitions", output)
        self.assertEqual(len(self.db.partitions(POSTS.intermediate_table)), 4)

    def test_add_partitions_without_intermediate(self):
        """Test the settings hint when --intermediate is forgotten."""
        self.call("prep", "posts", "createdAt", "month")
        with self.assertRaisesRegex(CommandError, "Did you mean to use --intermediate"):
            self.call("add_partitions", "posts")

    def test_add_partitions_negative_range(self):
        """Test a negative range is refused."""
        self.call("prep", "posts", "createdAt", "month")
        with self.assertRaisesRegex(CommandError, "must not be negative"):
            self.call("add_partitions", "posts", "--intermediate", "--past", "-1")

    def test_fill(self):
        """Test fill options reach the filler."""
        self.prepare()
        output = self.call("fill", "posts", "--batch-size", "2")
        self.assertIn("Filled public.posts in 3 batches", output)
        self.assertEqual(len(self.db.all_rows(POSTS.intermediate_table)), 5)

    def test_fill_invalid_batch_size(self):
        """Test a batch size below one is refused."""
        self.prepare()
        with self.assertRaises(CommandError):
            self.call("fill", "posts", "--batch-size", "0")

    def test_swap_and_unswap(self):
        """Test swap and unswap report the table."""
        self.prepare()
        self.assertIn("Swapped public.posts", self.call("swap", "posts", "--lock-timeout", "1s"))
        self.assertEqual(self.db.lock_timeout, "1s")
        self.assertTrue(self.db.table_exists(POSTS.retired_table))
        self.assertIn("Unswapped public.posts", self.call("unswap", "posts"))
        self.assertEqual(self.db.lock_timeout, "5s")
        self.assertTrue(self.db.table_exists(POSTS.intermediate_table))

    def test_swap_without_intermediate(self):
        """Test swap of a table that was never prepped."""
        with self.assertRaisesRegex(CommandError, "Table not found: public.posts_intermediate"):
            self.call("swap", "posts")

    def test_analyze(self):
        """Test analyze of the intermediate table."""
        self.prepare()
        self.call("analyze", "posts")
        partition = self.db.partitions(POSTS.intermediate_table)[0]
        self.assertEqual(self.db.analyzed, [partition, POSTS.intermediate_table])
