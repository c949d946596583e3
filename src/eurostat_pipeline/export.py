"""Export helpers for the normalized observation table."""

import os
from typing import Optional

import duckdb

from eurostat_pipeline.logging_config import create_logger, log_exception
from eurostat_pipeline.table import ObservationTable

logger = create_logger(__name__)

FORMATS = {".parquet": "PARQUET", ".csv": "CSV"}


def save_table(table: ObservationTable, path: str,
               connection: Optional[duckdb.DuckDBPyConnection] = None) -> None:
    """Save the table in long format to a Parquet or CSV file.

    Args:
        table: Observation table to save
        path: Destination file; the extension selects the format
        connection: DuckDB connection. If None, creates a new in-memory connection.

    Raises:
        ValueError: If the extension is not .parquet or .csv
    """
    extension = os.path.splitext(path)[1].lower()
    if extension not in FORMATS:
        raise ValueError(f"Unsupported export format {extension!r}; use .parquet or .csv")

    con = connection or duckdb.connect()
    try:
        con.register("observations", table.to_frame())
        options = "FORMAT PARQUET" if FORMATS[extension] == "PARQUET" else "FORMAT CSV, HEADER"
        target = path.replace("'", "''")
        con.sql(
            f"""
            COPY (SELECT * FROM observations ORDER BY indicator, entity, year)
            TO '{target}'
            ({options})
            """
        )
        con.unregister("observations")
        logger.info(f"💾 Table saved to {path} ({len(table)} rows)")
    except duckdb.Error as e:
        log_exception(logger, e, context="Table export", headline="EXPORT FAILED")
        raise
