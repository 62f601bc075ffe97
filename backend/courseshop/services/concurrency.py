# Overview: Low-level concurrency primitives used by the persistence gateway.

from __future__ import annotations

from sqlalchemy import text


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_immediate_if_sqlite(session) -> None:
    """
    Take the SQLite write lock up front.

    SQLite has no row locks; BEGIN IMMEDIATE serializes writers at the start
    of the transaction instead of failing them at commit time. Skipped when
    the connection already has an open transaction.
    """
    connection = session.connection()
    if connection.dialect.name != "sqlite":
        return
    if connection.connection.dbapi_connection.in_transaction:
        return
    session.execute(text("BEGIN IMMEDIATE"))


def compare_and_set(session, stmt) -> bool:
    """
    Execute a conditional UPDATE and report whether it matched exactly one row.

    The WHERE clause carries the precondition, so the check and the write
    are a single atomic statement.
    """
    result = session.execute(stmt)
    return result.rowcount == 1
