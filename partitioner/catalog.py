#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""
Read-only access to the PostgreSQL catalog.

Every call goes to the database; nothing is cached between calls so that each
lifecycle operation works from the current state of the schema.
"""
import logging

from django.db.utils import DatabaseError

from .ddl import sql_date
from .exceptions import UnsupportedKeyType
from .tables import CAST_DATE
from .tables import CAST_TIMESTAMPTZ
from .tables import PartitionConfig
from .tables import Sequence
from .tables import Table
from slicer.database import conn_execute
from slicer.database import fetchall
from slicer.database import fetchone
from slicer.database import fetchvalue
from slicer.database import quote_ident
from slicer.database_exc import is_undefined_function


LOG = logging.getLogger(__name__)

GENERATED_COLUMNS_VERSION = 120000


class CatalogIntrospector:
    """Fetch structural facts about tables from pg_catalog and information_schema."""

    def __init__(self, execute=conn_execute):
        self.execute = execute

    def server_version_num(self):
        return int(fetchvalue(self.execute("SHOW server_version_num ;")))

    def table_exists(self, table):
        sql = """
select count(*)
  from pg_catalog.pg_tables
 where schemaname = %s
   and tablename = %s ;
"""
        return fetchvalue(self.execute(sql, (table.schema, table.name))) > 0

    def view_exists(self, table):
        sql = """
select count(*)
  from pg_catalog.pg_views
 where schemaname = %s
   and viewname = %s ;
"""
        return fetchvalue(self.execute(sql, (table.schema, table.name))) > 0

    def columns(self, table):
        """Names of the stored (non-generated) columns in ordinal order."""
        sql = """
select column_name::text as column_name
  from information_schema.columns
 where table_schema = %s
   and table_name = %s
   and is_generated = 'NEVER'
 order
    by ordinal_position ;
"""
        return [r["column_name"] for r in fetchall(self.execute(sql, (table.schema, table.name)))]

    def column_cast(self, table, column):
        """Cast used for boundary literals of column, or None when the column does not exist."""
        sql = """
select data_type::text as data_type
  from information_schema.columns
 where table_schema = %s
   and table_name = %s
   and column_name = %s ;
"""
        rec = fetchone(self.execute(sql, (table.schema, table.name, column)))
        if not rec:
            return None
        return CAST_TIMESTAMPTZ if rec["data_type"] == "timestamp with time zone" else CAST_DATE

    def primary_key(self, table):
        sql = """
select a.attname::text as column_name
  from pg_index i
  join pg_class c
    on c.oid = i.indrelid
  join pg_namespace n
    on n.oid = c.relnamespace
  join pg_attribute a
    on a.attrelid = c.oid
   and a.attnum = any(i.indkey)
 where n.nspname = %s
   and c.relname = %s
   and i.indisprimary
 order
    by array_position(i.indkey, a.attnum) ;
"""
        return [r["column_name"] for r in fetchall(self.execute(sql, (table.schema, table.name)))]

    def index_defs(self, table):
        LOG.info(f"Getting indexes for table {table}")
        sql = """
select pg_get_indexdef(i.indexrelid) as indexdef
  from pg_index i
 where i.indrelid = %s::regclass
   and not i.indisprimary
 order
    by i.indexrelid ;
"""
        return [r["indexdef"] for r in fetchall(self.execute(sql, (table.quoted,)))]

    def foreign_keys(self, table):
        LOG.info(f"Getting foreign keys for table {table}")
        sql = """
select pg_get_constraintdef(c.oid) as definition
  from pg_constraint c
 where c.conrelid = %s::regclass
   and c.contype = 'f'
 order
    by c.conname ;
"""
        return [r["definition"] for r in fetchall(self.execute(sql, (table.quoted,)))]

    def sequences(self, table):
        sql = """
select a.attname::text as related_column,
       n.nspname::text as sequence_schema,
       s.relname::text as sequence_name
  from pg_class s
  join pg_depend d
    on d.objid = s.oid
  join pg_class t
    on d.refobjid = t.oid
  join pg_attribute a
    on (d.refobjid, d.refobjsubid) = (a.attrelid, a.attnum)
  join pg_namespace n
    on n.oid = s.relnamespace
  join pg_namespace nt
    on nt.oid = t.relnamespace
 where s.relkind = 'S'
   and nt.nspname = %s
   and t.relname = %s
 order
    by s.relname ;
"""
        return [
            Sequence(r["sequence_schema"], r["sequence_name"], r["related_column"])
            for r in fetchall(self.execute(sql, (table.schema, table.name)))
        ]

    def partitions(self, table):
        """Child tables of table, sorted by name."""
        sql = """
select nmsp_child.nspname::text as schema_name,
       child.relname::text as table_name
  from pg_inherits
  join pg_class parent
    on pg_inherits.inhparent = parent.oid
  join pg_class child
    on pg_inherits.inhrelid = child.oid
  join pg_namespace nmsp_parent
    on nmsp_parent.oid = parent.relnamespace
  join pg_namespace nmsp_child
    on nmsp_child.oid = child.relnamespace
 where nmsp_parent.nspname = %s
   and parent.relname = %s
 order
    by child.relname ;
"""
        return [
            Table(r["schema_name"], r["table_name"]) for r in fetchall(self.execute(sql, (table.schema, table.name)))
        ]

    def fetch_settings(self, table, trigger_name):
        """
        Read the partition settings of table.
        The routing trigger comment marks a trigger-based table; otherwise the table comment is used.
        Returns:
            PartitionConfig or None when the table was not prepared
        """
        trigger_sql = """
select obj_description(t.oid, 'pg_trigger') as comment
  from pg_trigger t
 where t.tgname = %s
   and t.tgrelid = %s::regclass ;
"""
        rec = fetchone(self.execute(trigger_sql, (trigger_name, table.quoted)))
        if rec.get("comment"):
            return PartitionConfig.from_comment(rec["comment"], declarative=False)

        table_sql = """
select obj_description(%s::regclass, 'pg_class') as comment ;
"""
        rec = fetchone(self.execute(table_sql, (table.quoted,)))
        return PartitionConfig.from_comment(rec.get("comment"), declarative=True)

    def _key_value(self, sql, table, primary_key):
        try:
            return fetchvalue(self.execute(sql))
        except DatabaseError as e:
            if is_undefined_function(e):
                raise UnsupportedKeyType(
                    f'Primary key "{primary_key}" of {table} is not numeric. Only numeric primary keys are supported.'
                ) from e
            raise

    def max_id(self, table, primary_key, where=None, below=None):
        """Largest key in table (0 when empty), optionally capped at below and filtered by where."""
        conditions = []
        if below is not None:
            conditions.append(f"{quote_ident(primary_key)} <= {below}")
        if where:
            conditions.append(f"({where})")
        sql = f"SELECT MAX({quote_ident(primary_key)}) FROM {table.quoted}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        return self._key_value(sql, table, primary_key) or 0

    def min_id(self, table, primary_key, column=None, cast=None, starting_time=None, where=None):
        """Smallest key in table at or after starting_time (1 when nothing matches)."""
        conditions = []
        if starting_time:
            conditions.append(f"{quote_ident(column)} >= {sql_date(starting_time, cast)}")
        if where:
            conditions.append(f"({where})")
        sql = f"SELECT MIN({quote_ident(primary_key)}) FROM {table.quoted}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        res = self._key_value(sql, table, primary_key)
        return 1 if res is None else res

    def supports_generated_columns(self):
        return self.server_version_num() >= GENERATED_COLUMNS_VERSION
