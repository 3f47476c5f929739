"""
Health-system directory access.

Provides the DirectoryService protocol, the Definitive Healthcare client
and a time-based snapshot cache over it.
"""

from src.enrichment.directory.cache import DirectoryCache, DirectorySnapshot
from src.enrichment.directory.client import DefinitiveDirectoryClient
from src.enrichment.directory.protocols import DEFAULT_ORDER_BY, DirectoryService

__all__ = [
    "DEFAULT_ORDER_BY",
    "DefinitiveDirectoryClient",
    "DirectoryCache",
    "DirectoryService",
    "DirectorySnapshot",
]
