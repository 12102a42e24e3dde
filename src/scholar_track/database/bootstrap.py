from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator

from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def iter_statements(sql: str) -> Iterator[str]:
    """Split a DDL script on ';'.

    The bundled schema carries no string literals containing ';'.
    """

    sql = re.sub(r"(?m)^\s*--.*$", "", sql)
    for stmt in sql.split(";"):
        stmt = stmt.strip()
        if stmt:
            yield stmt


def apply_schema(conn_factory: DatabaseConnection, *, schema_path: str | Path = SCHEMA_PATH) -> None:
    """Create the database and tables if missing (CREATE ... IF NOT EXISTS)."""

    database = conn_factory.config.database
    conn = conn_factory.connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()

    sql = Path(schema_path).read_text(encoding="utf-8")
    conn = conn_factory.connect()
    try:
        cur = conn.cursor()
        for stmt in iter_statements(sql):
            cur.execute(stmt)
        conn.commit()
        cur.execute("SHOW TABLES")
        tables = [row[0] for row in cur.fetchall()]
    finally:
        conn.close()

    logger.info("Schema ready on %s (tables=%d)", database, len(tables))
