"""
Analysis Store - SQLite storage for extracted asset metadata.

Provides:
- serialized file and object registry
- shader and shader sub-program rows (record sink for ShaderProcessor)
- per-asset savepoints so a rejected asset leaves no partial rows
- simple query helpers for the CLI and MCP server
"""

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from .schemas import AnalysisStatus, ShaderRecord, SubProgramRecord

logger = logging.getLogger("unity-analyzer")


def _like_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class AnalysisStore:
    """
    SQLite-backed sink for processor records.

    Schema:
    - serialized_files: one row per dump / serialized file name
    - objects: every analyzed object with its display name
    - shaders: one row per shader asset
    - shader_subprograms: one row per compiled sub-program
    - shader_view: shaders joined with object name and file
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str | Path):
        """
        Open (and create if needed) an analysis database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._write_lock = threading.RLock()
        self._write_conn: Optional[sqlite3.Connection] = None
        self._write_conn_pid = os.getpid()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _configure_connection(self, conn: sqlite3.Connection):
        """Apply consistent sqlite settings to a connection."""
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=15000")
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA temp_store=MEMORY")

    def _get_connection(self) -> sqlite3.Connection:
        """Get a short-lived DB connection (primarily for reads)."""
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        self._configure_connection(conn)
        return conn

    def _get_write_connection(self) -> sqlite3.Connection:
        """Get the reusable writer connection."""
        current_pid = os.getpid()
        if self._write_conn is not None and self._write_conn_pid != current_pid:
            self._reset_write_connection()

        if self._write_conn is None:
            self._write_conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False,
            )
            self._configure_connection(self._write_conn)
            self._write_conn_pid = current_pid

        return self._write_conn

    def _reset_write_connection(self):
        """Close and clear cached writer connection."""
        if self._write_conn is not None:
            try:
                self._write_conn.close()
            except sqlite3.Error:
                logger.debug("Ignoring error while closing writer connection")
            self._write_conn = None

    def close(self):
        """Commit pending writes and close cached resources."""
        with self._write_lock:
            if self._write_conn is not None:
                self._write_conn.commit()
            self._reset_write_connection()

    def _init_db(self):
        """Initialize database schema."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS serialized_files (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS objects (
                    id INTEGER PRIMARY KEY,
                    object_id INTEGER NOT NULL,
                    serialized_file INTEGER NOT NULL,
                    type TEXT NOT NULL,
                    name TEXT,
                    streamed_data_size INTEGER DEFAULT 0,
                    FOREIGN KEY (serialized_file) REFERENCES serialized_files(id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS shaders (
                    id INTEGER PRIMARY KEY,
                    decompressed_size INTEGER,
                    sub_shaders INTEGER,
                    unique_programs INTEGER,
                    keywords TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS shader_subprograms (
                    shader INTEGER NOT NULL,
                    pass INTEGER,
                    sub_program INTEGER,
                    hw_tier INTEGER,
                    shader_type TEXT,
                    api INTEGER,
                    keywords TEXT
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_objects_file ON objects(serialized_file)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_shader_subprograms_shader "
                "ON shader_subprograms(shader)"
            )

            conn.execute("""
                CREATE VIEW IF NOT EXISTS shader_view AS
                SELECT
                    s.id,
                    o.name,
                    f.name AS serialized_file,
                    s.decompressed_size,
                    s.sub_shaders,
                    s.unique_programs,
                    (SELECT COUNT(*) FROM shader_subprograms sp
                        WHERE sp.shader = s.id) AS sub_programs,
                    s.keywords
                FROM shaders s
                LEFT JOIN objects o ON o.id = s.id
                LEFT JOIN serialized_files f ON f.id = o.serialized_file
            """)

            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # WRITES
    # =========================================================================

    def add_serialized_file(self, name: str) -> int:
        """Register a serialized file name and return its database id."""
        with self._write_lock:
            conn = self._get_write_connection()
            conn.execute(
                "INSERT OR IGNORE INTO serialized_files (name) VALUES (?)", (name,)
            )
            row = conn.execute(
                "SELECT id FROM serialized_files WHERE name = ?", (name,)
            ).fetchone()
            return row["id"]

    def remove_file_contents(self, file_id: int) -> int:
        """Delete objects (and their shader rows) previously stored for a file.

        Returns the number of objects removed.
        """
        with self._write_lock:
            conn = self._get_write_connection()
            conn.execute(
                "DELETE FROM shader_subprograms WHERE shader IN "
                "(SELECT id FROM objects WHERE serialized_file = ?)",
                (file_id,),
            )
            conn.execute(
                "DELETE FROM shaders WHERE id IN "
                "(SELECT id FROM objects WHERE serialized_file = ?)",
                (file_id,),
            )
            cursor = conn.execute(
                "DELETE FROM objects WHERE serialized_file = ?", (file_id,)
            )
            return cursor.rowcount

    def next_object_id(self) -> int:
        """First object id not used by any stored object."""
        with self._write_lock:
            conn = self._get_write_connection()
            row = conn.execute("SELECT COALESCE(MAX(id), 0) FROM objects").fetchone()
            return row[0] + 1

    def insert_object(
        self,
        id: int,
        object_id: int,
        serialized_file: int,
        type: str,
        name: Optional[str],
        streamed_data_size: int = 0,
    ):
        with self._write_lock:
            conn = self._get_write_connection()
            conn.execute(
                """
                INSERT INTO objects
                    (id, object_id, serialized_file, type, name, streamed_data_size)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (id, object_id, serialized_file, type, name, streamed_data_size),
            )

    def insert_shader(self, record: ShaderRecord):
        with self._write_lock:
            conn = self._get_write_connection()
            conn.execute(
                """
                INSERT INTO shaders
                    (id, decompressed_size, sub_shaders, unique_programs, keywords)
                VALUES (?, ?, ?, ?, ?)
                """,
                record.to_row(),
            )

    def insert_sub_program(self, record: SubProgramRecord):
        with self._write_lock:
            conn = self._get_write_connection()
            conn.execute(
                """
                INSERT INTO shader_subprograms
                    (shader, pass, sub_program, hw_tier, shader_type, api, keywords)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                record.to_row(),
            )

    @contextmanager
    def asset_transaction(self, name: str = "asset"):
        """Scope one asset's writes in a SAVEPOINT.

        Rows written inside the block are rolled back if it raises; the
        exception propagates.
        """
        with self._write_lock:
            conn = self._get_write_connection()
            conn.execute(f"SAVEPOINT {name}")
            try:
                yield conn
            except BaseException:
                conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
                conn.execute(f"RELEASE SAVEPOINT {name}")
                raise
            else:
                conn.execute(f"RELEASE SAVEPOINT {name}")

    def commit(self):
        with self._write_lock:
            if self._write_conn is not None:
                self._write_conn.commit()

    def rollback(self):
        """Discard every write since the last commit."""
        with self._write_lock:
            if self._write_conn is not None:
                self._write_conn.rollback()

    def clear(self):
        """Delete all analysis data."""
        with self._write_lock:
            conn = self._get_write_connection()
            conn.execute("DELETE FROM shader_subprograms")
            conn.execute("DELETE FROM shaders")
            conn.execute("DELETE FROM objects")
            conn.execute("DELETE FROM serialized_files")
            conn.commit()

    # =========================================================================
    # READS
    # =========================================================================

    def get_status(self) -> AnalysisStatus:
        """Get row counts for the whole database."""
        conn = self._get_connection()
        try:
            files = conn.execute("SELECT COUNT(*) FROM serialized_files").fetchone()[0]
            total = conn.execute("SELECT COUNT(*) FROM objects").fetchone()[0]

            rows = conn.execute(
                "SELECT type, COUNT(*) AS cnt FROM objects GROUP BY type"
            ).fetchall()
            by_type = {row["type"]: row["cnt"] for row in rows}

            shaders = conn.execute("SELECT COUNT(*) FROM shaders").fetchone()[0]
            sub_programs = conn.execute(
                "SELECT COUNT(*) FROM shader_subprograms"
            ).fetchone()[0]

            return AnalysisStatus(
                serialized_files=files,
                total_objects=total,
                objects_by_type=by_type,
                shaders=shaders,
                sub_programs=sub_programs,
                schema_version=self.SCHEMA_VERSION,
            )
        finally:
            conn.close()

    def get_shader(self, shader_id: int) -> Optional[dict]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM shader_view WHERE id = ?", (shader_id,)
            ).fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    def list_shaders(
        self,
        name: Optional[str] = None,
        keyword: Optional[str] = None,
        limit: int = 50,
    ) -> list[dict]:
        """List shaders, optionally filtered by name substring or exact keyword."""
        clauses = []
        params: list = []

        if name:
            clauses.append("name LIKE ? ESCAPE '\\'")
            params.append(f"%{_like_escape(name)}%")
        if keyword:
            clauses.append("(' ' || keywords || ' ') LIKE ? ESCAPE '\\'")
            params.append(f"% {_like_escape(keyword)} %")

        sql = "SELECT * FROM shader_view"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY decompressed_size DESC, id LIMIT ?"
        params.append(limit)

        conn = self._get_connection()
        try:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def get_sub_programs(self, shader_id: int) -> list[dict]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT shader, pass, sub_program, hw_tier, shader_type, api, keywords
                FROM shader_subprograms
                WHERE shader = ?
                ORDER BY rowid
                """,
                (shader_id,),
            ).fetchall()
            return [dict(row) for row in rows]
        finally:
            conn.close()
