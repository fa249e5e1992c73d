# sourcing/storage/import_history_db.py

"""SQLite-backed history of committed imports."""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from sourcing.config.settings import Settings
from sourcing.models.import_record import ImportRecord

logger = logging.getLogger("sourcing.import_history")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS imports (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id      TEXT    NOT NULL,
    catalog_id     TEXT    NOT NULL,
    original_name  TEXT    NOT NULL,
    imported_name  TEXT    NOT NULL,
    original_price REAL    NOT NULL,
    imported_price REAL    NOT NULL,
    markup         REAL    NOT NULL,
    markup_kind    TEXT    NOT NULL,
    collection     TEXT    NOT NULL,
    ai_enhanced    INTEGER NOT NULL DEFAULT 0,
    imported_at    TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_imports_source
    ON imports(source_id);
CREATE INDEX IF NOT EXISTS idx_imports_collection
    ON imports(collection, imported_at);
"""

_COLUMNS = (
    "source_id, catalog_id, original_name, imported_name, "
    "original_price, imported_price, markup, markup_kind, "
    "collection, ai_enhanced, imported_at"
)


def _row_to_record(row: tuple[Any, ...]) -> ImportRecord:
    return ImportRecord(
        source_id=row[0],
        catalog_id=row[1],
        original_name=row[2],
        imported_name=row[3],
        original_price=row[4],
        imported_price=row[5],
        markup=row[6],
        markup_kind=row[7],
        collection=row[8],
        ai_enhanced=bool(row[9]),
        imported_at=datetime.fromisoformat(row[10]),
    )


class ImportHistoryDB:
    """SQLite-backed store of import records."""

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.IMPORT_HISTORY_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("ImportHistoryDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Recording ────────────────────────────────────────

    def record_imports(
        self,
        records: list[ImportRecord],
    ) -> int:
        """Insert one row per committed product.

        Returns the number of rows written.
        """
        self._conn.executemany(
            f"INSERT INTO imports ({_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    r.source_id,
                    r.catalog_id,
                    r.original_name,
                    r.imported_name,
                    r.original_price,
                    r.imported_price,
                    r.markup,
                    r.markup_kind,
                    r.collection,
                    int(r.ai_enhanced),
                    r.imported_at.isoformat(),
                )
                for r in records
            ],
        )
        self._conn.commit()
        if records:
            logger.info("Recorded %d imports", len(records))
        return len(records)

    # ── Querying ─────────────────────────────────────────

    def was_imported(self, source_id: str) -> bool:
        """Whether a listing has been committed before."""
        row = self._conn.execute(
            "SELECT 1 FROM imports WHERE source_id = ? LIMIT 1",
            (source_id,),
        ).fetchone()
        return row is not None

    def get_import_history(
        self,
        limit: int = 50,
        collection: str | None = None,
    ) -> list[ImportRecord]:
        """Most recent imports first, optionally for one collection."""
        if collection:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM imports "
                "WHERE collection = ? "
                "ORDER BY imported_at DESC, id DESC LIMIT ?",
                (collection, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM imports "
                "ORDER BY imported_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def get_import_stats(self) -> dict[str, Any]:
        """Totals, AI share, per-collection counts and markup revenue."""
        row = self._conn.execute(
            "SELECT COUNT(id), COALESCE(SUM(ai_enhanced), 0), "
            "       COALESCE(SUM(imported_price - original_price), 0) "
            "FROM imports",
        ).fetchone()
        total, ai_count, revenue = row
        by_collection = dict(
            self._conn.execute(
                "SELECT collection, COUNT(id) FROM imports "
                "GROUP BY collection ORDER BY collection",
            ).fetchall()
        )
        return {
            "total_imported": total,
            "ai_enhanced": ai_count,
            "by_collection": by_collection,
            "total_markup_revenue": round(revenue, 2),
            "average_markup": round(revenue / total, 2) if total else 0.0,
        }
