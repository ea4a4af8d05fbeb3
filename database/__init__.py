"""
SQLite storage for DockSlot: connection handling, schema and demo seed data.
"""

from database.connection import get_db, close_db, init_db, begin_immediate

__all__ = ['get_db', 'close_db', 'init_db', 'begin_immediate']
