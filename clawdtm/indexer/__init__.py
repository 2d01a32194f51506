"""Static index export."""

from clawdtm.indexer.builder import INDEX_VERSION, IndexBuilder

__all__ = ["INDEX_VERSION", "IndexBuilder"]
