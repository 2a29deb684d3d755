import logging
from typing import AsyncIterable, Callable, Iterable, Mapping, Optional

from errors import MalformedRecordError, TransactionSourceError
from ledger import Ledger
from models import MalformedRecord, ProcessingStats
from records import parse_row

logger = logging.getLogger(__name__)

Row = Mapping[str, Optional[str]]
MalformedSink = Callable[[MalformedRecord], None]


class StreamDriver:
    """
    Feeds raw records from a source into a Ledger, strictly in arrival order.

    Malformed records are skipped and reported to ``malformed_sink`` if one is
    given. Errors raised by the source itself are wrapped in
    TransactionSourceError and propagate to the caller.
    """

    def __init__(self, ledger: Ledger, malformed_sink: Optional[MalformedSink] = None):
        self._ledger = ledger
        self._malformed_sink = malformed_sink
        self._stats = ProcessingStats()

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def run(self, rows: Iterable[Row]) -> ProcessingStats:
        """Drain a blocking source to completion."""
        iterator = iter(rows)
        while True:
            try:
                row = next(iterator)
            except StopIteration:
                break
            except TransactionSourceError:
                raise
            except Exception as e:
                raise TransactionSourceError(f"Transaction source failed after {self._stats.seen} records: {e}") from e
            self._process_row(row)
        return self._stats

    async def run_async(self, rows: AsyncIterable[Row]) -> ProcessingStats:
        """Drain an asynchronous source, suspending only while awaiting the next row."""
        iterator = rows.__aiter__()
        while True:
            try:
                row = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except TransactionSourceError:
                raise
            except Exception as e:
                raise TransactionSourceError(f"Transaction source failed after {self._stats.seen} records: {e}") from e
            self._process_row(row)
        return self._stats

    def _process_row(self, row: Row) -> None:
        position = self._stats.seen + 1
        try:
            transaction = parse_row(row)
        except MalformedRecordError as e:
            logger.warning(f"Skipping malformed record {position} {dict(row)}: {e}")
            self._stats.record_malformed()
            if self._malformed_sink is not None:
                self._malformed_sink(MalformedRecord(dict(row), str(e), position))
            return

        if self._ledger.apply(transaction):
            self._stats.record_applied()
        else:
            self._stats.record_rejected()
