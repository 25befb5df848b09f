"""Persistence adapters for the project model.

- ``base``: abstract adapter contracts and the ``ProjectData`` payload
- ``cloud``: project service over HTTP (requests)
- ``local``: on-device cache (sqlite3, or in memory)
- ``gbp``: ``.gbp`` zip archive codec
"""

from .base import ArchiveCodec, Bundle, CloudStore, LocalCache, ProjectData
from .cloud import HttpCloudStore
from .gbp import GBP_EXTENSION, GbpArchiveCodec
from .local import InMemoryLocalCache, SqliteLocalCache

__all__ = [
    "ArchiveCodec",
    "Bundle",
    "CloudStore",
    "GBP_EXTENSION",
    "GbpArchiveCodec",
    "HttpCloudStore",
    "InMemoryLocalCache",
    "LocalCache",
    "ProjectData",
    "SqliteLocalCache",
]
