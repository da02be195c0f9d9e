#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Database execution helpers."""
import logging

from django.db import connection as conn


LOG = logging.getLogger(__name__)

DEFAULT_SCHEMA = "public"


# Standardized SQL executor
def conn_execute(sql, params=None, _conn=conn):
    """
    Executes the given sql with any given parameters. This utilized the django.db.connection.
    Params
        sql (str) : SQL string
        params (list) : Parameters for SQL
    Returns:
        Cursor (if a SQL string was passed in)
        None   (if no SQL string was passed in or empty string)
    """
    if sql:
        cursor = _conn.cursor()
        LOG.debug(f"SQL: {sql}")
        if params:
            LOG.debug(f"PARAMS: {params}")
        cursor.execute(sql, params)
        return cursor
    else:
        return None


# Standardized fetch all routine that will return list(dict)
def fetchall(cursor):
    """
    Fetch all rows from the given cursor
    Params:
        cursor (Cursor) : Cursor of previously executed statement
    Returns:
        list(dict) : List of dict representing the records selected indexed by column name
    """
    if cursor:
        cursor_def = [d.name for d in cursor.description]
        return [dict(zip(cursor_def, r)) for r in cursor.fetchall()]
    else:
        return []


# Standardized fetch that will return dict
def fetchone(cursor):
    """
    Fetch one row from the given cursor
    Params:
        cursor (Cursor) : Cursor of previously executed statement
    Returns:
        dict : Dict representing the records selected indexed by column name
    """
    if cursor:
        rec = cursor.fetchone()
        if rec is None:
            return {}
        return dict(zip((d.name for d in cursor.description), rec))
    else:
        return {}


def fetchvalue(cursor):
    """Return the first column of the first row, or None."""
    if cursor:
        rec = cursor.fetchone()
        return rec[0] if rec else None
    return None


def quote_ident(name):
    """Quote a SQL identifier, doubling any embedded quotes."""
    return '"' + str(name).replace('"', '""') + '"'


def quote_table(schema, name):
    return f"{quote_ident(schema)}.{quote_ident(name)}"


def escape_literal(value):
    """Quote a SQL string literal, doubling any embedded single quotes."""
    return "'" + str(value).replace("'", "''") + "'"
