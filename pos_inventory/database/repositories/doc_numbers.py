# pos_inventory/database/repositories/doc_numbers.py
from __future__ import annotations

from datetime import date
import sqlite3

from ...constants import DOC_SEQ_WIDTH


def format_doc_no(prefix: str, day: date, seq: int) -> str:
    return f"{prefix}-{day.strftime('%Y%m%d')}-{seq:0{DOC_SEQ_WIDTH}d}"


def next_doc_no(conn: sqlite3.Connection, prefix: str, day: date) -> str:
    """
    Bump and read the per-day counter for `prefix` (INV/RET/REC).

    Must run inside the caller's write transaction so the number is released
    again if the document insert rolls back. The documents' own UNIQUE
    constraint stays the last line of defence against collisions.
    """
    key = day.strftime("%Y%m%d")
    conn.execute(
        """
        INSERT INTO doc_sequences(kind, day, last_seq) VALUES (?, ?, 1)
        ON CONFLICT(kind, day) DO UPDATE SET last_seq = last_seq + 1
        """,
        (prefix, key),
    )
    row = conn.execute(
        "SELECT last_seq FROM doc_sequences WHERE kind=? AND day=?",
        (prefix, key),
    ).fetchone()
    return format_doc_no(prefix, day, int(row[0]))
