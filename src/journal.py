from dataclasses import replace
from decimal import Decimal
from typing import Dict, Optional

from models import DisputeStatus, JournalEntry


class DisputeJournal:
    """
    Deposits that later dispute, resolve and chargeback records may refer to.
    Keyed by transaction id, which is unique across the whole input stream.
    """

    def __init__(self):
        self._entries: Dict[int, JournalEntry] = {}

    def __contains__(self, transaction_id: int) -> bool:
        return transaction_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def record_deposit(self, transaction_id: int, client_id: int, amount: Decimal) -> None:
        """Store a deposit for future dispute lookups."""
        self._entries[transaction_id] = JournalEntry(client_id=client_id, amount=amount)

    def get_entry(self, transaction_id: int) -> Optional[JournalEntry]:
        """Retrieve a journal entry by transaction id."""
        return self._entries.get(transaction_id)

    def mark_disputed(self, transaction_id: int) -> None:
        self._set_status(transaction_id, DisputeStatus.DISPUTED)

    def clear_dispute(self, transaction_id: int) -> None:
        self._set_status(transaction_id, DisputeStatus.NORMAL)

    def mark_charged_back(self, transaction_id: int) -> None:
        self._set_status(transaction_id, DisputeStatus.CHARGED_BACK)

    def _set_status(self, transaction_id: int, status: DisputeStatus) -> None:
        entry = self._entries[transaction_id]
        if entry.status is DisputeStatus.CHARGED_BACK:
            raise ValueError(f"tx {transaction_id} is charged back, status can no longer change")
        self._entries[transaction_id] = replace(entry, status=status)
