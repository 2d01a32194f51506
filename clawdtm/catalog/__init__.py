"""External catalog mirror: client, record adapter, reconciler, checkpoint and sync job."""

from clawdtm.catalog.client import CatalogClient
from clawdtm.catalog.reconciler import ReconcileResult, Reconciler
from clawdtm.catalog.records import CatalogPage, CatalogRecord, parse_page, parse_timestamp
from clawdtm.catalog.state import CatalogSummary, SyncCheckpoint, SyncStateStore, compute_summary
from clawdtm.catalog.sync import CatalogSync, EnrichReport, SyncReport
from clawdtm.catalog.tags import is_meaningful_tag, meaningful_tags, normalize_tags

__all__ = [
    "CatalogClient",
    "CatalogPage",
    "CatalogRecord",
    "CatalogSummary",
    "CatalogSync",
    "compute_summary",
    "EnrichReport",
    "is_meaningful_tag",
    "meaningful_tags",
    "normalize_tags",
    "parse_page",
    "parse_timestamp",
    "ReconcileResult",
    "Reconciler",
    "SyncCheckpoint",
    "SyncReport",
    "SyncStateStore",
]
