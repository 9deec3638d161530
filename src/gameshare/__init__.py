"""Board game sharing platform.

Borrow requests, lending records and event registration over a shared
SQLite store.
"""

__version__ = "0.1.0"
