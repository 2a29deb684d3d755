import logging
from typing import Dict, List, Optional, Tuple, Union

from journal import DisputeJournal
from models import (
    AccountSnapshot,
    Chargeback,
    ClientAccount,
    Deposit,
    Dispute,
    DisputeStatus,
    JournalEntry,
    RejectedTransaction,
    RejectionReason,
    Resolve,
    TransactionRecord,
    Withdrawal,
)
from rejections import RejectionSink

logger = logging.getLogger(__name__)


class Ledger:
    """
    Account state for one independent account space.

    Transactions are applied one at a time, in arrival order, through ``apply``.
    Invalid transactions are discarded without touching any account; pass a
    ``rejection_sink`` to observe them. Not safe for concurrent writers, use
    one Ledger per input source.
    """

    def __init__(self, rejection_sink: Optional[RejectionSink] = None):
        self._accounts: Dict[int, ClientAccount] = {}
        self._journal = DisputeJournal()
        self._rejection_sink = rejection_sink

    def apply(self, transaction: TransactionRecord) -> bool:
        """
        Apply a single transaction.

        Returns True if the transaction changed the ledger, False if it was
        discarded.
        """
        match transaction:
            case Deposit():
                reason = self._handle_deposit(transaction)
            case Withdrawal():
                reason = self._handle_withdrawal(transaction)
            case Dispute():
                reason = self._handle_dispute(transaction)
            case Resolve():
                reason = self._handle_resolve(transaction)
            case Chargeback():
                reason = self._handle_chargeback(transaction)
            case _:
                raise TypeError(f"Not a transaction record: {transaction!r}")

        if reason is None:
            return True

        logger.debug(f"Discarding {transaction!r}: {reason.value}")
        if self._rejection_sink is not None:
            self._rejection_sink(RejectedTransaction(transaction, reason))
        return False

    def snapshot(self) -> List[AccountSnapshot]:
        """Return every account, in the order each client was first seen."""
        return [account.to_snapshot() for account in self._accounts.values()]

    def account(self, client_id: int) -> Optional[AccountSnapshot]:
        account = self._accounts.get(client_id)
        return account.to_snapshot() if account is not None else None

    def journal_entry(self, transaction_id: int) -> Optional[JournalEntry]:
        return self._journal.get_entry(transaction_id)

    def __len__(self) -> int:
        return len(self._accounts)

    def _get_account(self, client_id: int) -> ClientAccount:
        """
        Existing account, or a blank unregistered one. Unknown clients are only
        added to the ledger once one of their transactions is applied.
        """
        account = self._accounts.get(client_id)
        if account is None:
            return ClientAccount(client_id=client_id)
        return account

    def _register(self, account: ClientAccount) -> None:
        self._accounts.setdefault(account.client_id, account)

    def _handle_deposit(self, transaction: Deposit) -> Optional[RejectionReason]:
        if transaction.transaction_id in self._journal:
            return RejectionReason.DUPLICATE_TRANSACTION
        if transaction.amount <= 0:
            return RejectionReason.NON_POSITIVE_AMOUNT

        account = self._get_account(transaction.client_id)
        if account.locked:
            return RejectionReason.ACCOUNT_LOCKED

        account.credit(transaction.amount)
        self._register(account)
        self._journal.record_deposit(transaction.transaction_id, transaction.client_id, transaction.amount)
        return None

    def _handle_withdrawal(self, transaction: Withdrawal) -> Optional[RejectionReason]:
        account = self._get_account(transaction.client_id)
        if account.locked:
            return RejectionReason.ACCOUNT_LOCKED
        if account.available < transaction.amount:
            return RejectionReason.INSUFFICIENT_FUNDS
        if transaction.amount <= 0:
            return RejectionReason.NON_POSITIVE_AMOUNT

        # Withdrawals are never journaled, so they cannot be disputed later.
        account.debit(transaction.amount)
        self._register(account)
        return None

    def _referenced_entry(
        self, transaction: Union[Dispute, Resolve, Chargeback], expected: DisputeStatus
    ) -> Tuple[Optional[JournalEntry], Optional[RejectionReason]]:
        entry = self._journal.get_entry(transaction.referenced_id)
        if entry is None:
            return None, RejectionReason.UNKNOWN_TRANSACTION
        if entry.client_id != transaction.client_id:
            return None, RejectionReason.CLIENT_MISMATCH
        if entry.status is not expected:
            return None, RejectionReason.INVALID_DISPUTE_STATE
        return entry, None

    def _handle_dispute(self, transaction: Dispute) -> Optional[RejectionReason]:
        entry, reason = self._referenced_entry(transaction, DisputeStatus.NORMAL)
        if reason is not None:
            return reason

        account = self._get_account(transaction.client_id)
        if account.locked:
            return RejectionReason.ACCOUNT_LOCKED
        # Part of the deposit may already have been withdrawn.
        if account.available < entry.amount:
            return RejectionReason.INSUFFICIENT_FUNDS

        account.hold(entry.amount)
        self._journal.mark_disputed(transaction.referenced_id)
        return None

    def _handle_resolve(self, transaction: Resolve) -> Optional[RejectionReason]:
        entry, reason = self._referenced_entry(transaction, DisputeStatus.DISPUTED)
        if reason is not None:
            return reason

        account = self._get_account(transaction.client_id)
        if account.locked:
            return RejectionReason.ACCOUNT_LOCKED

        account.release_hold(entry.amount)
        self._journal.clear_dispute(transaction.referenced_id)
        return None

    def _handle_chargeback(self, transaction: Chargeback) -> Optional[RejectionReason]:
        entry, reason = self._referenced_entry(transaction, DisputeStatus.DISPUTED)
        if reason is not None:
            return reason

        account = self._get_account(transaction.client_id)
        if account.locked:
            return RejectionReason.ACCOUNT_LOCKED

        account.remove_held(entry.amount)
        account.freeze()
        self._journal.mark_charged_back(transaction.referenced_id)
        logger.info(f"Client {transaction.client_id} locked after chargeback of tx {transaction.referenced_id}")
        return None
