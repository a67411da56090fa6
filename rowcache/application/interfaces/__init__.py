"""Application ports (Protocols) implemented by infrastructure."""

from rowcache.application.interfaces.data_source import IDataSource

__all__ = ["IDataSource"]
