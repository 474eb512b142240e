"""
dbsync: Keep a target database in sync with one or more source databases.

Batch loads, recent-window refreshes and a never-ending incremental loop,
driven per table through a small staged pipeline.
"""

__version__ = "0.1.0"
