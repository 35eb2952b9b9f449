"""
Identity resolution against the external student roster.

Lookups are best-effort: they run on a worker thread with a hard deadline
and any failure degrades to "no match". They never fail a login.
"""

import time
import logging
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Optional

from .queries import build_phone_predicates
from .records import StudentRecord
from .source import RosterSource
from ..errors import ExternalLookupUnavailable
from ..phone import NormalizedPhone, mask_phone

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_TIMEOUT = 3.0


@dataclass
class PendingLookup:
    """A roster lookup started in the background."""
    phone: NormalizedPhone
    future: Optional[Future]
    deadline: float


class IdentityResolver:
    """
    Finds the roster record for a phone number, if any.

    Usage:
        pending = resolver.submit(phone)
        ...  # do the primary work
        record = resolver.join(pending)
    """

    def __init__(
        self,
        source: Optional[RosterSource],
        timeout: float = DEFAULT_LOOKUP_TIMEOUT,
        max_workers: int = 4
    ):
        """
        Args:
            source: Roster source, or None to disable lookups
            timeout: Seconds a lookup may take before it counts as no match
            max_workers: Lookup thread pool size
        """
        self.source = source
        self.timeout = timeout
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def enabled(self) -> bool:
        return self.source is not None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="roster-lookup"
            )
        return self._executor

    def _lookup(self, phone: NormalizedPhone) -> Optional[StudentRecord]:
        predicates = build_phone_predicates(phone)
        doc = self.source.find_one(predicates)
        return StudentRecord.from_document(doc) if doc else None

    def submit(self, phone: NormalizedPhone) -> PendingLookup:
        """Start a lookup without waiting for it."""
        deadline = time.monotonic() + self.timeout
        if not self.enabled:
            return PendingLookup(phone=phone, future=None, deadline=deadline)

        future = self._get_executor().submit(self._lookup, phone)
        return PendingLookup(phone=phone, future=future, deadline=deadline)

    def join(self, pending: PendingLookup) -> Optional[StudentRecord]:
        """
        Wait for a started lookup until its deadline.

        Returns:
            The matching record, or None on no match, timeout or any failure
        """
        if pending.future is None:
            return None

        remaining = max(0.0, pending.deadline - time.monotonic())
        masked = mask_phone(pending.phone.e164)
        try:
            record = pending.future.result(timeout=remaining)
        except FutureTimeoutError:
            pending.future.cancel()
            logger.warning(f"Roster lookup timed out after {self.timeout}s for {masked}")
            return None
        except ExternalLookupUnavailable as e:
            logger.warning(f"Roster unavailable for {masked}: {e}")
            return None
        except Exception as e:
            logger.error(f"Roster lookup failed for {masked}: {e}")
            return None

        if record:
            logger.debug(f"Found roster student for {masked}")
        return record

    def find_match(self, phone: NormalizedPhone) -> Optional[StudentRecord]:
        """Look up a number and wait for the result (bounded by the timeout)."""
        return self.join(self.submit(phone))

    def close(self):
        """Stop the worker pool and close the roster source."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        if self.source is not None:
            self.source.close()
