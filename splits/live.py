"""
Live settlement observation

A SettlementWatch polls the receipt's revision counter and produces a fresh
immutable snapshot whenever it moves. Because the counter lives in the
database, a watch sees changes made by any process.
"""
import logging
import time
from typing import Callable, Iterator, Optional

from django.conf import settings

from splits.identity import Identity
from splits.repositories import ReceiptRepository
from splits.schemas import SettlementSnapshot

logger = logging.getLogger(__name__)


class SettlementWatch:
    """
    Lazy stream of snapshots for one receipt and viewer.

    Iterating yields the current snapshot straight away, then a new one each
    time the receipt's revision changes. When the receipt is archived or
    deleted the stream yields a single ``None`` and ends. Every ``iter()``
    starts over from the current state; ``close()`` ends all iteration.

    ``snapshots`` is the SnapshotService used to build each snapshot.
    """

    def __init__(self, receipt_id, identity: Optional[Identity], snapshots,
                 receipts: ReceiptRepository = None,
                 poll_interval: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.receipt_id = receipt_id
        self.identity = identity
        self.receipts = receipts or ReceiptRepository()
        self.snapshots = snapshots
        if poll_interval is None:
            poll_interval = getattr(settings, 'SPLITS_LIVE_POLL_INTERVAL', 1.0)
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.clock = clock
        self.closed = False

    def __iter__(self) -> Iterator[Optional[SettlementSnapshot]]:
        return self._stream()

    def close(self) -> None:
        if not self.closed:
            logger.debug(f"Closing settlement watch on {self.receipt_id}")
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def current(self) -> Optional[SettlementSnapshot]:
        """Snapshot as of now, or None if the receipt is no longer available"""
        receipt = self.receipts.get_by_id(self.receipt_id)
        if receipt is None or not receipt.is_active:
            return None
        return self.snapshots.build_snapshot(receipt, self.identity)

    def _state(self):
        state = self.receipts.get_revision(self.receipt_id)
        if state is None or not state[1]:
            return None
        return state[0]

    def _stream(self) -> Iterator[Optional[SettlementSnapshot]]:
        last_revision = None
        while not self.closed:
            revision = self._state()
            if revision is None:
                yield None
                return

            if revision != last_revision:
                snapshot = self.current()
                if snapshot is None:
                    yield None
                    return
                last_revision = snapshot.revision
                yield snapshot
                continue

            self.sleep(self.poll_interval)

    def wait_for_change(self, since: Optional[int], timeout: float) -> Optional[SettlementSnapshot]:
        """
        Long-poll helper: block until the revision differs from ``since``.

        Returns the current snapshot on change or when ``timeout`` seconds
        pass, and None if the receipt stops being available.
        """
        deadline = self.clock() + max(0.0, timeout)
        while not self.closed:
            revision = self._state()
            if revision is None:
                return None
            if since is None or revision != since or self.clock() >= deadline:
                return self.current()
            self.sleep(self.poll_interval)
        return None
