"""rowcache: read-through / write-through row cache for SQLAlchemy entities."""

__version__ = "0.1.0"
