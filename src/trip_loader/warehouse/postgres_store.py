"""
PostgreSQL implementation of the trip store.

Staging uses COPY for the bulk append, a ROW_NUMBER() window for
in-batch duplicates and an EXISTS semi-join against the committed
table for cross-store duplicates.
"""

from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from psycopg import Cursor, sql

from trip_loader.core.models import DUPLICATE_KEY_COLUMNS, TRIP_COLUMNS

from .connection import DatabaseConnectionPool
from .schema_mgmt import STAGING_ID_COLUMN, SchemaManager, column_list
from .store import (
    DEFAULT_COMMITTED_TABLE,
    DEFAULT_STAGING_TABLE,
    StagedRow,
    StagingArea,
    StagingSession,
    TripStore,
)


def _staged_row(row: dict[str, Any]) -> StagedRow:
    return StagedRow(
        row_id=row[STAGING_ID_COLUMN],
        values=tuple(row[c] for c in TRIP_COLUMNS),
    )


class PostgresStagingSession(StagingSession):
    """Staging operations bound to one open transaction cursor."""

    def __init__(self, cur: Cursor, staging_table: str, committed_table: str):
        self.cur = cur
        self.staging = sql.Identifier(staging_table)
        self.committed = sql.Identifier(committed_table)
        self.row_id = sql.Identifier(STAGING_ID_COLUMN)

    def append(self, rows: Iterable[tuple[Any, ...]]) -> int:
        statement = sql.SQL("COPY {} ({}) FROM STDIN").format(self.staging, column_list())
        appended = 0
        with self.cur.copy(statement) as copy:
            for row in rows:
                copy.write_row(row)
                appended += 1
        return appended

    def count(self) -> int:
        self.cur.execute(sql.SQL("SELECT COUNT(*) AS n FROM {}").format(self.staging))
        return self.cur.fetchone()["n"]

    def clear(self) -> int:
        self.cur.execute(sql.SQL("DELETE FROM {}").format(self.staging))
        return self.cur.rowcount

    def find_duplicates_in_batch(self) -> list[StagedRow]:
        partition = sql.SQL(", ").join(sql.Identifier(c) for c in DUPLICATE_KEY_COLUMNS)
        query = sql.SQL(
            """
            SELECT {id}, {columns}
            FROM (
                SELECT {id}, {columns},
                       ROW_NUMBER() OVER (PARTITION BY {partition} ORDER BY {id}) AS rn
                FROM {staging}
            ) ranked
            WHERE rn > 1
            ORDER BY {id}
            """
        ).format(
            id=self.row_id,
            columns=column_list(),
            partition=partition,
            staging=self.staging,
        )
        self.cur.execute(query)
        return [_staged_row(row) for row in self.cur.fetchall()]

    def find_duplicates_in_store(self) -> list[StagedRow]:
        match = sql.SQL(" AND ").join(
            sql.SQL("{} = {}").format(sql.Identifier("c", col), sql.Identifier("s", col))
            for col in DUPLICATE_KEY_COLUMNS
        )
        query = sql.SQL(
            """
            SELECT {s_id}, {s_columns}
            FROM {staging} s
            WHERE EXISTS (SELECT 1 FROM {committed} c WHERE {match})
            ORDER BY {s_id}
            """
        ).format(
            s_id=sql.Identifier("s", STAGING_ID_COLUMN),
            s_columns=column_list("s"),
            staging=self.staging,
            committed=self.committed,
            match=match,
        )
        self.cur.execute(query)
        return [_staged_row(row) for row in self.cur.fetchall()]

    def discard(self, row_ids: list[int]) -> int:
        if not row_ids:
            return 0
        self.cur.execute(
            sql.SQL("DELETE FROM {} WHERE {} = ANY(%s)").format(self.staging, self.row_id),
            (list(row_ids),),
        )
        return self.cur.rowcount

    def promote(self) -> int:
        self.cur.execute(
            sql.SQL("INSERT INTO {committed} ({columns}) SELECT {columns} FROM {staging} ORDER BY {id}").format(
                committed=self.committed,
                columns=column_list(),
                staging=self.staging,
                id=self.row_id,
            )
        )
        promoted = self.cur.rowcount
        self.clear()
        return promoted


class PostgresStagingArea(StagingArea):
    """Unlogged staging table; one pooled connection per unit of work."""

    def __init__(self, pool: DatabaseConnectionPool, table_name: str, committed_table: str):
        super().__init__(table_name)
        self.pool = pool
        self.committed_table = committed_table
        self.schema = SchemaManager(pool)

    def create(self) -> None:
        self.schema.recreate_staging_table(self.table_name)

    def drop(self) -> None:
        self.schema.drop_table(self.table_name)

    @contextmanager
    def unit_of_work(self) -> Iterator[PostgresStagingSession]:
        with self.pool.transaction() as cur:
            yield PostgresStagingSession(cur, self.table_name, self.committed_table)


class PostgresTripStore(TripStore):
    """
    Committed trip table in PostgreSQL.

    Rows are only ever inserted into the committed table, never updated.
    """

    def __init__(self, pool: DatabaseConnectionPool, committed_table: str = DEFAULT_COMMITTED_TABLE):
        super().__init__(committed_table)
        self.pool = pool
        self.schema = SchemaManager(pool)

    def ensure_schema(self) -> None:
        self.schema.create_committed_table(self.committed_table)

    def staging_area(self, table_name: str = DEFAULT_STAGING_TABLE) -> PostgresStagingArea:
        return PostgresStagingArea(self.pool, table_name, self.committed_table)

    def count_committed(self) -> int:
        rows = self.pool.execute_query(
            sql.SQL("SELECT COUNT(*) AS n FROM {}").format(sql.Identifier(self.committed_table))
        )
        return rows[0]["n"]

    def fetch_committed(self) -> list[tuple[Any, ...]]:
        """All committed rows in TRIP_COLUMNS order, oldest first."""
        rows = self.pool.execute_query(
            sql.SQL("SELECT {} FROM {} ORDER BY {}").format(
                column_list(),
                sql.Identifier(self.committed_table),
                sql.Identifier(STAGING_ID_COLUMN),
            )
        )
        return [tuple(row[c] for c in TRIP_COLUMNS) for row in rows]
