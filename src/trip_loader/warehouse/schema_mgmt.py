"""
DDL for the committed trip table, its indexes and the staging table.

Identifiers are composed with psycopg.sql so table and column names
are always quoted.
"""

from psycopg import sql

from trip_loader.core.models import TRIP_COLUMNS

from .connection import DatabaseConnectionPool

STAGING_ID_COLUMN = "Id"

# Committed table column types
COMMITTED_COLUMN_TYPES: dict[str, str] = {
    "PickupDateTime": "TIMESTAMP NOT NULL",
    "DropoffDateTime": "TIMESTAMP NOT NULL",
    "PassengerCount": "INTEGER",
    "TripDistance": "NUMERIC(10,2)",
    "StoreAndFwdFlag": "VARCHAR(3)",
    "PULocationID": "INTEGER",
    "DOLocationID": "INTEGER",
    "FareAmount": "NUMERIC(10,2)",
    "TipAmount": "NUMERIC(10,2)",
}

# Staging rows are always fully populated
STAGING_COLUMN_TYPES: dict[str, str] = {
    "PickupDateTime": "TIMESTAMP NOT NULL",
    "DropoffDateTime": "TIMESTAMP NOT NULL",
    "PassengerCount": "INTEGER NOT NULL",
    "TripDistance": "NUMERIC(10,2) NOT NULL",
    "StoreAndFwdFlag": "VARCHAR(3) NOT NULL",
    "PULocationID": "INTEGER NOT NULL",
    "DOLocationID": "INTEGER NOT NULL",
    "FareAmount": "NUMERIC(10,2) NOT NULL",
    "TipAmount": "NUMERIC(10,2) NOT NULL",
}

# (index suffix, [(column, descending)])
COMMITTED_INDEXES: list[tuple[str, list[tuple[str, bool]]]] = [
    ("pulocationid_tipamount", [("PULocationID", False), ("TipAmount", False)]),
    ("tripdistance", [("TripDistance", True)]),
    ("pickup_dropoff", [("PickupDateTime", False), ("DropoffDateTime", False)]),
    ("pulocationid", [("PULocationID", False)]),
]


def column_list(alias: str | None = None) -> sql.Composed:
    """Comma-separated, quoted TRIP_COLUMNS, optionally qualified by a table alias."""
    if alias:
        return sql.SQL(", ").join(sql.Identifier(alias, c) for c in TRIP_COLUMNS)
    return sql.SQL(", ").join(sql.Identifier(c) for c in TRIP_COLUMNS)


def _column_definitions(types: dict[str, str]) -> sql.Composed:
    return sql.SQL(", ").join(
        sql.SQL("{} {}").format(sql.Identifier(c), sql.SQL(types[c])) for c in TRIP_COLUMNS
    )


def committed_table_ddl(table_name: str) -> sql.Composed:
    return sql.SQL(
        "CREATE TABLE IF NOT EXISTS {table} ({id} BIGSERIAL PRIMARY KEY, {columns})"
    ).format(
        table=sql.Identifier(table_name),
        id=sql.Identifier(STAGING_ID_COLUMN),
        columns=_column_definitions(COMMITTED_COLUMN_TYPES),
    )


def committed_index_ddl(table_name: str) -> list[sql.Composed]:
    statements = []
    for suffix, columns in COMMITTED_INDEXES:
        parts = sql.SQL(", ").join(
            sql.SQL("{} DESC").format(sql.Identifier(c)) if desc else sql.Identifier(c)
            for c, desc in columns
        )
        statements.append(
            sql.SQL("CREATE INDEX IF NOT EXISTS {name} ON {table} ({parts})").format(
                name=sql.Identifier(f"ix_{table_name}_{suffix}"),
                table=sql.Identifier(table_name),
                parts=parts,
            )
        )
    return statements


def staging_table_ddl(table_name: str) -> sql.Composed:
    return sql.SQL(
        "CREATE UNLOGGED TABLE {table} ({id} BIGSERIAL PRIMARY KEY, {columns})"
    ).format(
        table=sql.Identifier(table_name),
        id=sql.Identifier(STAGING_ID_COLUMN),
        columns=_column_definitions(STAGING_COLUMN_TYPES),
    )


def drop_table_ddl(table_name: str) -> sql.Composed:
    return sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(table_name))


class SchemaManager:
    """
    Creates and removes the tables used by the pipeline.

    Handles:
    - Creating the committed table and its indexes
    - Recreating the staging table empty
    - Dropping the staging table
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize schema manager.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def create_committed_table(self, table_name: str) -> None:
        with self.pool.transaction() as cur:
            cur.execute(committed_table_ddl(table_name))
            for statement in committed_index_ddl(table_name):
                cur.execute(statement)

    def recreate_staging_table(self, table_name: str) -> None:
        with self.pool.transaction() as cur:
            cur.execute(drop_table_ddl(table_name))
            cur.execute(staging_table_ddl(table_name))

    def drop_table(self, table_name: str) -> None:
        self.pool.execute_command(drop_table_ddl(table_name))

    def table_exists(self, table_name: str) -> bool:
        quoted = '"' + table_name.replace('"', '""') + '"'
        rows = self.pool.execute_query(
            "SELECT to_regclass(%s) IS NOT NULL AS present", (quoted,)
        )
        return bool(rows[0]["present"])
