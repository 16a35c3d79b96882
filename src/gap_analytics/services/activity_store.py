"""
Activity collection and its local JSON cache.

The store is the single owner of the RawActivity collection. It supports
exactly two mutations: replace the whole collection after a sync, and patch
one activity by id after enrichment. Every analytics view is recomputed from
it.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..exceptions import ActivityNotInStoreError, CacheError, MalformedActivityError
from ..integrations.base import OAuthCredentials
from ..models.activity import RawActivity

logger = logging.getLogger(__name__)


class ActivityStore:
    """In-memory activity collection keyed by id, newest first."""

    def __init__(self, activities: Optional[Iterable[RawActivity]] = None):
        self._activities: Dict[int, RawActivity] = {}
        if activities is not None:
            self.replace_all(activities)

    def __len__(self) -> int:
        return len(self._activities)

    def __contains__(self, activity_id: int) -> bool:
        return activity_id in self._activities

    def replace_all(self, activities: Iterable[RawActivity]) -> None:
        """Swap the whole collection (after a full sync)."""
        self._activities = {a.id: a for a in activities}

    def patch(self, activity: RawActivity) -> bool:
        """
        Replace one activity by id (after enrichment).

        Returns False, leaving the collection untouched, when the id is not
        present; a patch never adds activities.
        """
        if activity.id not in self._activities:
            logger.debug("Ignoring patch for unknown activity %s", activity.id)
            return False
        self._activities[activity.id] = activity
        return True

    def get(self, activity_id: int) -> RawActivity:
        """
        Look up one activity.

        Raises:
            ActivityNotInStoreError: If the id is not in the collection
        """
        try:
            return self._activities[activity_id]
        except KeyError:
            raise ActivityNotInStoreError(activity_id)

    def all(self) -> List[RawActivity]:
        """Every activity, newest first."""
        return sorted(
            self._activities.values(),
            key=lambda a: (a.start_date, a.id),
            reverse=True,
        )

    def running_activities(self) -> List[RawActivity]:
        """Runs only (Run, TrailRun, VirtualRun), newest first."""
        return [a for a in self.all() if a.is_running]

    def missing_split_ids(self, activity_ids: Optional[Iterable[int]] = None) -> List[int]:
        """
        Runs that have not been enriched with splits yet.

        Args:
            activity_ids: Restrict to these ids (e.g. a drift report's
                missing-detail list); defaults to every run.
        """
        if activity_ids is None:
            candidates = self.running_activities()
        else:
            candidates = [self._activities[i] for i in activity_ids if i in self._activities]
        return [a.id for a in candidates if not a.has_splits]


class ActivityCache:
    """
    JSON file cache for activities and Strava credentials.

    File layout::

        {"activities": [<Strava activity payload>, ...],
         "credentials": {<OAuthCredentials.to_dict()>} | null}
    """

    ACTIVITIES_KEY = "activities"
    CREDENTIALS_KEY = "credentials"

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheError(f"Cannot read cache: {e}", path=str(self.path)) from e
        if not isinstance(data, dict):
            raise CacheError("Cache file is not a JSON object", path=str(self.path))
        return data

    def _write(self, data: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(data, f)
            tmp.replace(self.path)
        except OSError as e:
            raise CacheError(f"Cannot write cache: {e}", path=str(self.path), write=True) from e

    def load(self) -> Tuple[List[RawActivity], Optional[OAuthCredentials]]:
        """
        Load cached activities and credentials.

        Cached records that no longer parse are skipped with a warning.

        Raises:
            CacheError: If the file exists but is not valid JSON
        """
        data = self._read()

        activities = []
        for payload in data.get(self.ACTIVITIES_KEY) or []:
            try:
                activities.append(RawActivity.from_api_response(payload))
            except MalformedActivityError as e:
                logger.warning("Skipping cached activity: %s", e.message)

        credentials = None
        raw_credentials = data.get(self.CREDENTIALS_KEY)
        if raw_credentials:
            try:
                credentials = OAuthCredentials.from_dict(raw_credentials)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Ignoring cached credentials: %s", e)

        return activities, credentials

    def load_store(self) -> ActivityStore:
        """Build an ActivityStore from the cached activities."""
        activities, _ = self.load()
        return ActivityStore(activities)

    def save(
        self,
        activities: Optional[Iterable[RawActivity]] = None,
        credentials: Optional[OAuthCredentials] = None,
    ) -> None:
        """
        Write activities and/or credentials, keeping whichever part is omitted.

        Raises:
            CacheError: If the file cannot be written
        """
        data = self._read()
        if activities is not None:
            data[self.ACTIVITIES_KEY] = [a.to_dict() for a in activities]
        if credentials is not None:
            data[self.CREDENTIALS_KEY] = credentials.to_dict()
        self._write(data)

    def clear(self) -> None:
        """Remove the cache file."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot remove cache: {e}", path=str(self.path), write=True) from e
