"""DuckDB checkpoint store for the closure reference and per-run results."""

from pathlib import Path
from typing import Optional

import duckdb
import polars as pl
import structlog

logger = structlog.get_logger()


class PipelineStore:
    """
    DuckDB-backed storage for pipeline tables.

    The gene-to-GO closure is written here once by the build step and read
    back by every enrichment run. Each saved table gets a row in the
    ``_checkpoints`` metadata table so later commands can tell whether the
    expensive build has already happened.
    """

    def __init__(self, db_path: Path):
        """
        Open (or create) the DuckDB database at ``db_path``.

        Args:
            db_path: Path to DuckDB database file. Parent directories
                     are created automatically.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = duckdb.connect(str(self.db_path))

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS _checkpoints (
                table_name VARCHAR PRIMARY KEY,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                row_count INTEGER,
                description VARCHAR
            )
        """)

    def save_dataframe(
        self,
        df: pl.DataFrame,
        table_name: str,
        description: str = "",
        replace: bool = True
    ) -> None:
        """
        Save a polars DataFrame as a DuckDB table.

        Args:
            df: DataFrame to save
            table_name: Name for the DuckDB table
            description: Optional description for checkpoint metadata
            replace: If True, replace existing table; if False, append
        """
        if not isinstance(df, pl.DataFrame):
            raise ValueError("df must be a polars.DataFrame")

        # DuckDB resolves `df` from the local scope (replacement scan)
        if replace:
            self.conn.execute(f"CREATE OR REPLACE TABLE {table_name} AS SELECT * FROM df")
        else:
            self.conn.execute(f"INSERT INTO {table_name} SELECT * FROM df")

        row_count = self.conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()[0]
        self.conn.execute("""
            INSERT OR REPLACE INTO _checkpoints (table_name, row_count, description, created_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
        """, [table_name, row_count, description])

        logger.debug("store_table_saved", table=table_name, row_count=row_count)

    def load_dataframe(self, table_name: str) -> Optional[pl.DataFrame]:
        """
        Load a table as a polars DataFrame.

        Returns:
            DataFrame or None if the table doesn't exist
        """
        try:
            return self.conn.execute(f"SELECT * FROM {table_name}").pl()
        except duckdb.CatalogException:
            return None

    def has_checkpoint(self, table_name: str) -> bool:
        """Return True if ``table_name`` was saved through this store."""
        result = self.conn.execute(
            "SELECT COUNT(*) FROM _checkpoints WHERE table_name = ?",
            [table_name]
        ).fetchone()
        return result[0] > 0

    def checkpoint_description(self, table_name: str) -> Optional[str]:
        """Description recorded with ``table_name``, or None if it has no checkpoint."""
        result = self.conn.execute(
            "SELECT description FROM _checkpoints WHERE table_name = ?",
            [table_name]
        ).fetchone()
        return result[0] if result else None

    def list_checkpoints(self) -> list[dict]:
        """
        List all checkpoints with metadata, newest first.

        Returns:
            List of dicts with keys: table_name, created_at, row_count, description
        """
        rows = self.conn.execute("""
            SELECT table_name, created_at, row_count, description
            FROM _checkpoints
            ORDER BY created_at DESC, table_name
        """).fetchall()

        keys = ("table_name", "created_at", "row_count", "description")
        return [dict(zip(keys, row)) for row in rows]

    def delete_checkpoint(self, table_name: str) -> None:
        """Drop a table and its checkpoint metadata."""
        self.conn.execute(f"DROP TABLE IF EXISTS {table_name}")
        self.conn.execute(
            "DELETE FROM _checkpoints WHERE table_name = ?",
            [table_name]
        )

    def export_parquet(self, table_name: str, output_path: Path) -> None:
        """Export a table to Parquet using DuckDB's native writer."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        quoted = str(output_path).replace("'", "''")
        self.conn.execute(
            f"COPY {table_name} TO '{quoted}' (FORMAT PARQUET)"
        )

    def execute_query(
        self,
        query: str,
        params: Optional[list] = None
    ) -> pl.DataFrame:
        """Execute a SQL query and return the result as a polars DataFrame."""
        if params:
            result = self.conn.execute(query, params)
        else:
            result = self.conn.execute(query)
        return result.pl()

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "PipelineStore":
        """Create a PipelineStore at ``config.duckdb_path``."""
        return cls(config.duckdb_path)
