"""
Search indexing of analyzed modules.
"""

from legacylens.indexing.service import IndexingService, InMemoryIndex

__all__ = ["InMemoryIndex", "IndexingService"]
