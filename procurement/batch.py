"""
Batch operation coordinator.

Applies a single-record operation to many ids and reports per-id
outcomes.  Domain failures (ProcurementError) are collected and never
abort the batch; a store failure (sqlite3.Error) aborts it wholesale.
"""
import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from models.result import BatchError, BatchResult
from .errors import ProcurementError

logger = logging.getLogger(__name__)


class BatchCoordinator:
    """
    Args:
        max_workers: Threads used per batch.  1 runs sequentially in the
                     caller's thread.
        ping:        Called once before a batch starts; it should raise
                     sqlite3.Error if the store is unreachable.
    """

    def __init__(self, max_workers: int = 1, ping: Optional[Callable[[], None]] = None):
        self.max_workers = max(1, max_workers)
        self.ping = ping

    def apply_batch(self, ids: Iterable[str], operation: Callable[[str], object]) -> BatchResult:
        unique = list(dict.fromkeys(i.strip() for i in ids if i and i.strip()))
        result = BatchResult()
        if not unique:
            return result

        if self.ping is not None:
            self.ping()

        if self.max_workers == 1 or len(unique) == 1:
            outcomes = [self._attempt(i, operation) for i in unique]
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(unique))) as pool:
                outcomes = list(pool.map(lambda i: self._attempt(i, operation), unique))

        for po_id, error in zip(unique, outcomes):
            if error is None:
                result.success_count += 1
                result.succeeded_ids.append(po_id)
            else:
                result.failed_count += 1
                result.errors.append(error)

        logger.info(
            "Batch %s: %d succeeded, %d failed",
            getattr(operation, "__name__", "operation"),
            result.success_count, result.failed_count,
        )
        return result

    @staticmethod
    def _attempt(po_id: str, operation: Callable[[str], object]) -> Optional[BatchError]:
        try:
            operation(po_id)
        except sqlite3.Error:
            logger.error("Store failure during batch at %s; aborting", po_id)
            raise
        except ProcurementError as exc:
            logger.debug("Batch item %s failed: %s", po_id, exc.message)
            return BatchError(id=po_id, error=exc.code, message=exc.message)
        return None
