"""
Split enrichment service.

Summary listings carry no per-km splits, so drift analysis needs one detail
request per run. Requests are issued strictly one at a time with a fixed
delay between them to stay inside the provider's rate limits.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, Optional

import httpx

from ..integrations.base import AuthenticationError, IntegrationError
from ..models.activity import RawActivity
from .activity_store import ActivityStore
from .base import BaseService


FetchActivity = Callable[[int], Awaitable[RawActivity]]
EnrichmentProgress = Callable[[int, int], None]


@dataclass
class EnrichmentResult:
    """Outcome of one enrichment pass."""

    total: int
    enriched: list = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def completed(self) -> int:
        """Ids processed, whether they succeeded or not."""
        return len(self.enriched) + len(self.failed)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "enriched": list(self.enriched),
            "failed": {str(k): v for k, v in self.failed.items()},
            "cancelled": self.cancelled,
        }


class SplitEnrichmentService(BaseService):
    """
    Fetches split detail for runs, one request at a time.

    Usage:
        service = SplitEnrichmentService(client.get_activity, store, delay_seconds=1.0)
        result = await service.enrich(report.missing_detail, on_progress=print)
    """

    def __init__(
        self,
        fetch_activity: FetchActivity,
        store: ActivityStore,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(logger)
        self._fetch_activity = fetch_activity
        self._store = store
        self._delay_seconds = max(0.0, delay_seconds)
        self._sleep = sleep

    async def enrich(
        self,
        activity_ids: Iterable[int],
        on_progress: Optional[EnrichmentProgress] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> EnrichmentResult:
        """
        Fetch and store split detail for each id, in order.

        A failure on one id is logged and counted and the queue moves on;
        the id stays without splits. Authentication failures abort the
        whole pass because every later request would fail the same way.

        Args:
            activity_ids: Ids to enrich (duplicates are fetched once)
            on_progress: Called with (completed, total) after every id
            cancel_event: When set, stops before the next fetch

        Returns:
            EnrichmentResult with per-id outcomes

        Raises:
            AuthenticationError: If the provider rejects the credentials
        """
        queue = list(dict.fromkeys(activity_ids))
        result = EnrichmentResult(total=len(queue))

        if not queue:
            return result

        self._logger.info(f"Enriching {len(queue)} activities with split detail")

        for index, activity_id in enumerate(queue):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                self._logger.info(f"Enrichment cancelled after {result.completed}/{result.total}")
                break

            if index > 0 and self._delay_seconds:
                await self._sleep(self._delay_seconds)

            try:
                activity = await self._fetch_activity(activity_id)
            except AuthenticationError:
                self._logger.error("Enrichment aborted: Strava rejected the credentials")
                raise
            except (IntegrationError, httpx.HTTPError) as e:
                self._logger.warning(f"Failed to enrich activity {activity_id}: {e}")
                result.failed[activity_id] = str(e)
            else:
                if self._store.patch(activity):
                    result.enriched.append(activity_id)
                else:
                    result.failed[activity_id] = "activity not in collection"

            if on_progress:
                on_progress(result.completed, result.total)

        self._logger.info(
            f"Enrichment finished: {len(result.enriched)} enriched, "
            f"{result.failure_count} failed"
        )
        return result
