"""
SQLite connection handling.
One connection per app context on ``g.db``; dates and timestamps come back as
the text they were stored as.
"""

import logging
import sqlite3
from flask import g, current_app

logger = logging.getLogger(__name__)


def get_db():
    """
    Return the app-context connection, opening it on first use.

    Rows are sqlite3.Row; foreign keys are enforced and the journal runs in WAL
    mode so readers don't block the single writer.
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/dockslot.db')
        db = sqlite3.connect(db_path, timeout=10)
        db.row_factory = sqlite3.Row
        db.execute('PRAGMA foreign_keys = ON')
        db.execute('PRAGMA journal_mode = WAL')
        g.db = db
    return g.db


def begin_immediate(db):
    """
    Open a write transaction that takes the database write lock up front.

    Conflict checks run inside this transaction see every committed booking
    and block other writers until commit or rollback, so the database is
    the arbiter for double bookings.

    Args:
        db: Connection from get_db()
    """
    if db.in_transaction:
        db.commit()
    db.execute('BEGIN IMMEDIATE')


def close_db(e=None):
    """Teardown hook: close the connection opened by get_db()."""
    db = g.pop('db', None)
    if db is not None:
        db.close()


def init_db():
    """
    Rebuild the database from scratch and load the demo captain.

    Drops every DockSlot table first, so all existing data is lost.
    """
    from database.schema import drop_tables, create_tables, create_indexes
    from database.seed import seed_database

    db = get_db()

    drop_tables(db)
    create_tables(db)
    create_indexes(db)
    seed_database(db)

    db.commit()
    logger.info('Database initialized at %s', current_app.config.get('DATABASE_PATH'))
