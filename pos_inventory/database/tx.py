# pos_inventory/database/tx.py
from __future__ import annotations

from contextlib import contextmanager
import itertools
import logging
import sqlite3
from typing import Iterator

from ..errors import DomainError, InternalError, translate_integrity_error

_log = logging.getLogger(__name__)

_savepoint_ids = itertools.count(1)


@contextmanager
def _raw_tx(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    BEGIN IMMEDIATE (write lock up front), commit on success, rollback on error.
    Nests as a SAVEPOINT when the caller already has a transaction open.
    """
    if conn.in_transaction:
        name = f"sp_{next(_savepoint_ids)}"
        conn.execute(f"SAVEPOINT {name}")
        try:
            yield conn
        except BaseException:
            conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        else:
            conn.execute(f"RELEASE SAVEPOINT {name}")
        return

    cur = conn.cursor()
    try:
        cur.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        cur.close()


@contextmanager
def immediate_tx(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a unit of work atomically.

    Domain errors propagate unchanged after the rollback. Constraint and
    trigger failures are translated into the domain taxonomy; any other
    sqlite3 failure is logged and surfaced as InternalError.
    """
    try:
        with _raw_tx(conn):
            yield conn
    except DomainError:
        raise
    except sqlite3.IntegrityError as e:
        raise translate_integrity_error(e) from e
    except sqlite3.Error as e:
        _log.error("Transaction aborted by datastore error", exc_info=True)
        raise InternalError("Datastore failure; operation aborted.") from e
