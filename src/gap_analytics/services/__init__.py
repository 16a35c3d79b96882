"""Services around the analytics core: storage, enrichment and dashboard."""

from .activity_store import ActivityCache, ActivityStore
from .base import BaseService
from .dashboard import DashboardReport, DashboardService
from .enrichment import EnrichmentResult, SplitEnrichmentService

__all__ = [
    "ActivityCache",
    "ActivityStore",
    "BaseService",
    "DashboardReport",
    "DashboardService",
    "EnrichmentResult",
    "SplitEnrichmentService",
]
