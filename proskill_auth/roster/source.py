"""
Roster data sources.

MongoRosterSource talks to the external Flowline database through one lazily
created client that is reused across requests and closed on shutdown.
InMemoryRosterSource evaluates the same predicates over plain documents,
e.g. a JSON export of the roster.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional

from pymongo import MongoClient, DESCENDING
from pymongo.errors import PyMongoError

from .queries import PhonePredicate, to_mongo_filter
from .records import PROJECTION, FIELD_UPDATED_AT
from ..config import RosterConfig
from ..errors import ExternalLookupUnavailable

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "flowline"


class RosterSource(ABC):
    """Read-only roster access."""

    @abstractmethod
    def find_one(self, predicates: List[PhonePredicate]) -> Optional[dict]:
        """
        Return one document matching any predicate, most recently updated first.

        Raises:
            ExternalLookupUnavailable: The store can't be reached
        """

    def close(self):
        """Release any held resources."""


class MongoRosterSource(RosterSource):
    """Roster backed by the Flowline MongoDB `students` collection."""

    def __init__(self, config: RosterConfig):
        self.config = config
        self._client: Optional[MongoClient] = None
        self._lock = threading.Lock()

    def _timeout_ms(self) -> int:
        return max(1, int(self.config.lookup_timeout * 1000))

    def _get_collection(self):
        with self._lock:
            if self._client is None:
                timeout_ms = self._timeout_ms()
                self._client = MongoClient(
                    self.config.mongodb_uri,
                    serverSelectionTimeoutMS=timeout_ms,
                    connectTimeoutMS=timeout_ms,
                    socketTimeoutMS=timeout_ms,
                )
                logger.info("Flowline roster client initialized")
            client = self._client

        if self.config.database:
            db = client[self.config.database]
        else:
            db = client.get_default_database(default=DEFAULT_DATABASE)
        return db[self.config.collection]

    def find_one(self, predicates: List[PhonePredicate]) -> Optional[dict]:
        if not predicates:
            return None

        try:
            collection = self._get_collection()
            return collection.find_one(
                to_mongo_filter(predicates),
                projection=PROJECTION,
                sort=[(FIELD_UPDATED_AT, DESCENDING)],
                max_time_ms=self._timeout_ms(),
            )
        except PyMongoError as e:
            raise ExternalLookupUnavailable(f"Roster query failed: {e}") from e

    def close(self):
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None
                logger.info("Flowline roster client closed")


class InMemoryRosterSource(RosterSource):
    """Roster held in memory as a list of documents."""

    def __init__(self, documents: Optional[Iterable[dict]] = None):
        self.documents: List[dict] = list(documents or [])

    @classmethod
    def from_json_file(cls, path) -> "InMemoryRosterSource":
        """
        Load a roster export.

        Raises:
            ExternalLookupUnavailable: File missing or not a JSON list
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ExternalLookupUnavailable(f"Could not load roster file: {e}") from e

        if not isinstance(data, list):
            raise ExternalLookupUnavailable("Roster file must contain a JSON list")

        logger.info(f"Loaded {len(data)} roster records from {path}")
        return cls(d for d in data if isinstance(d, dict))

    def find_one(self, predicates: List[PhonePredicate]) -> Optional[dict]:
        matches = [
            doc for doc in self.documents
            if any(p.matches(doc) for p in predicates)
        ]
        if not matches:
            return None

        # Stable sort keeps insertion order among equal timestamps
        matches.sort(key=lambda d: str(d.get(FIELD_UPDATED_AT) or ""), reverse=True)
        return matches[0]


def create_roster_source(config: RosterConfig) -> Optional[RosterSource]:
    """Build the configured roster source, or None when roster lookups are disabled."""
    if config.mongodb_uri:
        return MongoRosterSource(config)

    if config.json_file:
        try:
            return InMemoryRosterSource.from_json_file(config.json_file)
        except ExternalLookupUnavailable as e:
            logger.error(f"Roster file unavailable, roster lookups disabled: {e}")
            return None

    logger.warning("FLOWLINE_MONGODB_URI is not set. Roster lookups are disabled.")
    return None
