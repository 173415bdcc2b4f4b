"""
Database connection management.
Handles per-request connections, write transactions, initialization, and teardown.
"""

import sqlite3
from contextlib import contextmanager

from flask import g, current_app


def get_db():
    """
    Get thread-safe database connection with row factory.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/resourcebook.db')
        g.db = sqlite3.connect(
            db_path,
            timeout=current_app.config.get('DATABASE_BUSY_TIMEOUT', 5.0),
            detect_types=sqlite3.PARSE_DECLTYPES
        )
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # Enable WAL mode for better concurrency
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def immediate_transaction():
    """
    Open a write transaction that takes the database write lock up front.

    BEGIN IMMEDIATE serializes writers: a read performed inside the block
    cannot be invalidated by another writer before the block commits.

    Yields:
        sqlite3.Cursor bound to the locked transaction

    Raises:
        sqlite3.OperationalError: If the lock could not be acquired within
            DATABASE_BUSY_TIMEOUT
        RuntimeError: If the connection already has an open transaction
    """
    db = get_db()
    if db.in_transaction:
        raise RuntimeError('immediate_transaction() called with a transaction already open')

    cursor = db.cursor()
    cursor.execute('BEGIN IMMEDIATE')
    try:
        yield cursor
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db():
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes
    create_indexes(db)

    # Insert seed data
    seed_database(db)

    db.commit()
    current_app.logger.info('Database initialized at %s', current_app.config.get('DATABASE_PATH'))
