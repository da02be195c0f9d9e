#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
import datetime
import io

from django.test import SimpleTestCase

from partitioner import lifecycle
from partitioner.exceptions import LockTimeout
from partitioner.exceptions import PreconditionFailed
from partitioner.swap import SwapCoordinator
from partitioner.tables import Table
from partitioner.test.fakes import FakeDatabase


POSTS = Table("public", "posts")
TODAY = datetime.datetime(2023, 1, 15, tzinfo=datetime.timezone.utc)
COLUMNS = {"id": "bigint", "title": "text", "createdAt": "date"}


def make_db(retired=False):
    db = FakeDatabase()
    db.create_table(POSTS, COLUMNS, sequence="posts_id_seq")
    db.create_table(POSTS.intermediate_table, COLUMNS)
    if retired:
        db.create_table(POSTS.retired_table, COLUMNS)
    return db


def snapshot(db):
    """Table names and the owner of every sequence."""
    return (
        sorted(str(table) for table in db.relations),
        {sequence.name: db.table_of(owner) for sequence, owner in db.sequence_owners.items()},
    )


class TestSwapStatements(SimpleTestCase):
    def test_swap(self):
        """Test the rename and ownership statements of a swap."""
        db = make_db()
        statements = SwapCoordinator(db).swap(POSTS)
        self.assertEqual(
            statements,
            [
                "SET LOCAL lock_timeout = '5s';",
                'ALTER TABLE "public"."posts" RENAME TO "posts_retired";',
                'ALTER TABLE "public"."posts_intermediate" RENAME TO "posts";',
                'ALTER SEQUENCE "public"."posts_id_seq" OWNED BY "public"."posts"."id";',
            ],
        )

    def test_unswap(self):
        """Test the rename statements of an unswap."""
        db = FakeDatabase()
        db.create_table(POSTS, COLUMNS, sequence="posts_id_seq")
        db.create_table(POSTS.retired_table, COLUMNS)
        statements = SwapCoordinator(db, lock_timeout="1min").unswap(POSTS)
        self.assertEqual(statements[0], "SET LOCAL lock_timeout = '1min';")
        self.assertEqual(statements[1], 'ALTER TABLE "public"."posts" RENAME TO "posts_intermediate";')
        self.assertEqual(statements[2], 'ALTER TABLE "public"."posts_retired" RENAME TO "posts";')

    def test_lock_timeout_is_escaped(self):
        """Test the lock timeout is written as a literal."""
        coordinator = SwapCoordinator(None, "5s'; DROP")
        self.assertEqual(coordinator.lock_timeout_sql(), "SET LOCAL lock_timeout = '5s''; DROP';")

    def test_swap_preconditions(self):
        """Test swap refuses to run when a retired table exists or intermediate is missing."""
        with self.assertRaisesRegex(PreconditionFailed, "Table already exists: public.posts_retired"):
            SwapCoordinator(make_db(retired=True)).swap(POSTS)
        db = FakeDatabase()
        db.create_table(POSTS, COLUMNS)
        with self.assertRaisesRegex(PreconditionFailed, "Table not found: public.posts_intermediate"):
            SwapCoordinator(db).swap(POSTS)

    def test_unswap_preconditions(self):
        """Test unswap needs a retired table and no intermediate table."""
        with self.assertRaisesRegex(PreconditionFailed, "Table not found: public.posts_retired"):
            SwapCoordinator(make_db()).unswap(POSTS)
        with self.assertRaisesRegex(PreconditionFailed, "Table already exists: public.posts_intermediate"):
            SwapCoordinator(make_db(retired=True)).unswap(POSTS)


class TestSwapTransitions(SimpleTestCase):
    def setUp(self):
        self.db = make_db()
        self.runner = self.db.runner()

    def test_swap_then_unswap_restores_state(self):
        """Test unswap is the inverse of swap."""
        original = self.db.relation(POSTS)
        intermediate = self.db.relation(POSTS.intermediate_table)
        before = snapshot(self.db)

        lifecycle.swap(self.db, self.runner, POSTS)
        self.assertIs(self.db.relation(POSTS), intermediate)
        self.assertIs(self.db.relation(POSTS.retired_table), original)
        self.assertIsNone(self.db.relation(POSTS.intermediate_table))
        self.assertIs(self.db.sequence_owners[self.db.sequences(POSTS)[0]], intermediate)
        self.assertEqual(self.db.lock_timeout, "5s")

        lifecycle.unswap(self.db, self.runner, POSTS)
        self.assertIs(self.db.relation(POSTS), original)
        self.assertIs(self.db.relation(POSTS.intermediate_table), intermediate)
        self.assertEqual(snapshot(self.db), before)

    def test_lock_timeout_rolls_back(self):
        """Test a lock timeout leaves every table where it was."""
        self.db.locked.add(POSTS.intermediate_table)
        before = snapshot(self.db)
        with self.assertRaises(LockTimeout):
            lifecycle.swap(self.db, self.runner, POSTS, lock_timeout="100ms")
        self.assertEqual(snapshot(self.db), before)
        self.assertEqual(self.db.lock_timeout, "100ms")

    def test_dry_run(self):
        """Test a dry run prints the statements and changes nothing."""
        output = io.StringIO()
        lifecycle.swap(self.db, self.db.runner(dry_run=True, output=output), POSTS)
        self.assertEqual(self.db.executed, [])
        self.assertIn("/* dry run */", output.getvalue())
        self.assertIn('ALTER TABLE "public"."posts" RENAME TO "posts_retired";', output.getvalue())
        self.assertTrue(self.db.table_exists(POSTS.intermediate_table))


class TestViewSwap(SimpleTestCase):
    def setUp(self):
        self.db = FakeDatabase()
        rows = [{"id": k, "title": f"post {k}", "createdAt": datetime.date(2023, 1, k)} for k in range(1, 6)]
        self.db.create_table(POSTS, COLUMNS, rows=rows, sequence="posts_id_seq")
        self.runner = self.db.runner()
        lifecycle.prep(self.db, self.runner, POSTS, "createdAt", "month")

    def setup_view(self):
        lifecycle.add_partitions(self.db, self.runner, POSTS, intermediate=True, use_view=True, today=TODAY)

    def test_setup_view(self):
        """Test the original table is retired behind a union view."""
        self.setup_view()
        self.assertTrue(self.db.view_exists(POSTS))
        retired = self.db.relation(POSTS.retired_table)
        self.assertEqual(retired.options["autovacuum_enabled"], "false")
        self.assertEqual(retired.options["toast.autovacuum_enabled"], "false")
        self.assertIn('"public"."posts_view_trigger"', self.db.functions)
        self.assertIn("partition_trigger", self.db.relation(POSTS).triggers)
        self.assertEqual(self.db.sequence_owner("posts_id_seq"), POSTS.retired_table)
        self.assertEqual(len(self.db.all_rows(POSTS)), 5)
        self.assertIsNone(self.db.lock_timeout)

    def test_view_trigger_uses_sequence(self):
        """Test inserts through the view draw keys from the original sequence."""
        self.setup_view()
        function = next(sql for sql in self.db.executed if "posts_view_trigger" in sql)
        self.assertIn("NEW.\"id\" := nextval('\"public\".\"posts_id_seq\"'::regclass);", function)
        self.assertIn('UPDATE "public"."posts_intermediate" SET "id" = NEW."id", "title" = NEW."title"', function)

    def test_setup_view_requires_intermediate(self):
        """Test the view can only be put in front of the intermediate table."""
        with self.assertRaisesRegex(PreconditionFailed, "--use-view requires --intermediate"):
            lifecycle.add_partitions(self.db, self.runner, POSTS, use_view=True, today=TODAY)
        self.assertFalse(self.db.view_exists(POSTS))

    def test_view_swap_then_unswap(self):
        """Test swapping the view out and back in."""
        self.setup_view()
        retired = self.db.relation(POSTS.retired_table)
        intermediate = self.db.relation(POSTS.intermediate_table)

        lifecycle.swap(self.db, self.runner, POSTS, use_view=True)
        self.assertIs(self.db.relation(POSTS), intermediate)
        self.assertIs(self.db.relation(POSTS.retired_table), retired)
        self.assertNotIn('"public"."posts_view_trigger"', self.db.functions)
        self.assertIn('DROP VIEW "public"."posts" CASCADE;', self.db.executed)
        self.assertEqual(self.db.sequence_owner("posts_id_seq"), POSTS)

        lifecycle.unswap(self.db, self.runner, POSTS, use_view=True)
        self.assertTrue(self.db.view_exists(POSTS))
        self.assertIs(self.db.relation(POSTS.intermediate_table), intermediate)
        self.assertIs(self.db.relation(POSTS.retired_table), retired)
        self.assertIn('"public"."posts_view_trigger"', self.db.functions)
        self.assertEqual(self.db.sequence_owner("posts_id_seq"), POSTS.retired_table)
        self.assertEqual(len(self.db.all_rows(POSTS)), 5)

    def test_view_swap_requires_view(self):
        """Test view swap and unswap preconditions."""
        self.setup_view()
        lifecycle.swap(self.db, self.runner, POSTS, use_view=True)
        with self.assertRaisesRegex(PreconditionFailed, "View not found: public.posts"):
            lifecycle.swap(self.db, self.runner, POSTS, use_view=True)

        lifecycle.unswap(self.db, self.runner, POSTS, use_view=True)
        with self.assertRaisesRegex(PreconditionFailed, "Table not found: public.posts"):
            lifecycle.unswap(self.db, self.runner, POSTS, use_view=True)
