"""Repository abstractions for database interactions."""

from .catalog_repository import CatalogRepository
from .sync_log_repository import SyncLogRepository

__all__ = [
    "CatalogRepository",
    "SyncLogRepository",
]
