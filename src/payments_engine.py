import logging
import threading
from typing import List, Optional

from ledger import Ledger
from message_queue import RecordQueue
from models import AccountSnapshot, ProcessingStats
from records import aiter_csv_rows, iter_csv_rows
from rejections import RejectionSink
from stream_driver import MalformedSink, StreamDriver

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Runs one CSV file through a fresh Ledger.

    A publisher thread reads and queues rows while the calling thread applies
    them in order, so the ledger itself only ever has a single writer.
    """

    def __init__(
        self,
        queue_size: int = 1024,
        rejection_sink: Optional[RejectionSink] = None,
        malformed_sink: Optional[MalformedSink] = None,
    ):
        self._queue_size = queue_size
        self._rejection_sink = rejection_sink
        self._malformed_sink = malformed_sink
        self._stats: Optional[ProcessingStats] = None

    @property
    def stats(self) -> Optional[ProcessingStats]:
        """Counters from the most recent run."""
        return self._stats

    def process_file(self, filepath: str) -> List[AccountSnapshot]:
        """Process CSV file and return final account states."""
        ledger = Ledger(rejection_sink=self._rejection_sink)
        driver = StreamDriver(ledger, malformed_sink=self._malformed_sink)
        queue: RecordQueue = RecordQueue(maxsize=self._queue_size)

        logger.info(f"Starting processing of {filepath}")

        publisher_thread = threading.Thread(
            target=self._publish_rows, args=(filepath, queue), daemon=True
        )
        publisher_thread.start()
        try:
            self._stats = driver.run(queue.drain())
        finally:
            queue.shutdown()
            publisher_thread.join()

        self._log_stats(self._stats)
        return ledger.snapshot()

    async def process_file_async(self, filepath: str) -> List[AccountSnapshot]:
        """Async variant of ``process_file``; rows are read off the event loop."""
        ledger = Ledger(rejection_sink=self._rejection_sink)
        driver = StreamDriver(ledger, malformed_sink=self._malformed_sink)

        logger.info(f"Starting async processing of {filepath}")
        self._stats = await driver.run_async(aiter_csv_rows(filepath))

        self._log_stats(self._stats)
        return ledger.snapshot()

    def _publish_rows(self, filepath: str, queue: RecordQueue) -> None:
        """Read CSV and publish rows to queue."""
        try:
            with open(filepath, "r", newline="") as f:
                for row in iter_csv_rows(f):
                    if queue.is_shutdown():
                        return
                    queue.publish_message(row)
        except Exception as e:
            logger.error(f"Failed to read {filepath}: {e}")
            queue.fail(e)
        else:
            queue.shutdown()

    @staticmethod
    def _log_stats(stats: ProcessingStats) -> None:
        logger.info(
            f"Processing complete. Applied: {stats.applied}, "
            f"Rejected: {stats.rejected}, "
            f"Malformed: {stats.malformed}"
        )
