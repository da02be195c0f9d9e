#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
from collections import namedtuple
from unittest.mock import Mock

from django.test import SimpleTestCase

from . import database as db


Column = namedtuple("Column", ["name"])


def make_cursor(rows, names):
    cursor = Mock()
    cursor.description = [Column(n) for n in names]
    cursor.fetchall.return_value = list(rows)
    cursor.fetchone.return_value = rows[0] if rows else None
    return cursor


class TestConnExecute(SimpleTestCase):
    def test_execute(self):
        """Test the statement and parameters reach the cursor."""
        conn = Mock()
        cursor = db.conn_execute("select %s", [1], _conn=conn)
        self.assertIs(cursor, conn.cursor.return_value)
        cursor.execute.assert_called_once_with("select %s", [1])

    def test_execute_nothing(self):
        """Test that an empty statement is not sent."""
        conn = Mock()
        self.assertIsNone(db.conn_execute("", _conn=conn))
        conn.cursor.assert_not_called()


class TestFetch(SimpleTestCase):
    def test_fetchall(self):
        """Test rows come back as dicts keyed by column name."""
        cursor = make_cursor([(1, "a"), (2, "b")], ["id", "name"])
        self.assertEqual(db.fetchall(cursor), [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}])
        self.assertEqual(db.fetchall(None), [])

    def test_fetchone(self):
        """Test the first row as a dict."""
        self.assertEqual(db.fetchone(make_cursor([(1, "a")], ["id", "name"])), {"id": 1, "name": "a"})
        self.assertEqual(db.fetchone(make_cursor([], ["id"])), {})
        self.assertEqual(db.fetchone(None), {})

    def test_fetchvalue(self):
        """Test the first column of the first row."""
        self.assertEqual(db.fetchvalue(make_cursor([(42, "a")], ["max", "name"])), 42)
        self.assertIsNone(db.fetchvalue(make_cursor([], ["max"])))
        self.assertIsNone(db.fetchvalue(None))


class TestQuoting(SimpleTestCase):
    def test_quote_ident(self):
        """Test identifiers are double quoted with embedded quotes doubled."""
        self.assertEqual(db.quote_ident("createdAt"), '"createdAt"')
        self.assertEqual(db.quote_ident('we"ird'), '"we""ird"')
        self.assertEqual(db.quote_table("acct10001", "posts"), '"acct10001"."posts"')

    def test_escape_literal(self):
        """Test literals are single quoted with embedded quotes doubled."""
        self.assertEqual(db.escape_literal("5s"), "'5s'")
        self.assertEqual(db.escape_literal("it's"), "'it''s'")
