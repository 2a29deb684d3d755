from dataclasses import dataclass
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow
from enum import Enum
from typing import ClassVar, Union

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

# Parsed amounts stay below 10**20 with at most 28 fractional digits. A balance
# summed from 2**32 of them needs under 60 significant digits.
MAX_AMOUNT_INTEGER_DIGITS = 20
MAX_AMOUNT_SCALE = 28
BALANCE_PRECISION = 64

# Balance arithmetic raises instead of rounding.
BALANCE_CONTEXT = Context(
    prec=BALANCE_PRECISION,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class DisputeStatus(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


class RejectionReason(Enum):
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    NON_POSITIVE_AMOUNT = "non_positive_amount"
    ACCOUNT_LOCKED = "account_locked"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    CLIENT_MISMATCH = "client_mismatch"
    INVALID_DISPUTE_STATE = "invalid_dispute_state"


@dataclass(frozen=True)
class Deposit:
    transaction_type: ClassVar[TransactionType] = TransactionType.DEPOSIT

    transaction_id: int
    client_id: int
    amount: Decimal


@dataclass(frozen=True)
class Withdrawal:
    transaction_type: ClassVar[TransactionType] = TransactionType.WITHDRAWAL

    transaction_id: int
    client_id: int
    amount: Decimal


@dataclass(frozen=True)
class Dispute:
    transaction_type: ClassVar[TransactionType] = TransactionType.DISPUTE

    client_id: int
    referenced_id: int


@dataclass(frozen=True)
class Resolve:
    transaction_type: ClassVar[TransactionType] = TransactionType.RESOLVE

    client_id: int
    referenced_id: int


@dataclass(frozen=True)
class Chargeback:
    transaction_type: ClassVar[TransactionType] = TransactionType.CHARGEBACK

    client_id: int
    referenced_id: int


TransactionRecord = Union[Deposit, Withdrawal, Dispute, Resolve, Chargeback]


@dataclass
class ClientAccount:
    """Balances of one client. All arithmetic goes through BALANCE_CONTEXT."""

    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return BALANCE_CONTEXT.add(self.available, self.held)

    def credit(self, amount: Decimal) -> None:
        self.available = BALANCE_CONTEXT.add(self.available, amount)

    def debit(self, amount: Decimal) -> None:
        self.available = BALANCE_CONTEXT.subtract(self.available, amount)

    def hold(self, amount: Decimal) -> None:
        """Move funds under dispute from available to held."""
        self.debit(amount)
        self.held = BALANCE_CONTEXT.add(self.held, amount)

    def release_hold(self, amount: Decimal) -> None:
        self.remove_held(amount)
        self.credit(amount)

    def remove_held(self, amount: Decimal) -> None:
        self.held = BALANCE_CONTEXT.subtract(self.held, amount)

    def freeze(self) -> None:
        self.locked = True

    def to_snapshot(self) -> "AccountSnapshot":
        return AccountSnapshot(
            client_id=self.client_id,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )


@dataclass(frozen=True)
class AccountSnapshot:
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass(frozen=True)
class JournalEntry:
    """A deposit that can still be referenced by dispute, resolve and chargeback."""

    client_id: int
    amount: Decimal
    status: DisputeStatus = DisputeStatus.NORMAL


@dataclass(frozen=True)
class RejectedTransaction:
    transaction: TransactionRecord
    reason: RejectionReason

    def __repr__(self) -> str:
        return f"RejectedTransaction({self.transaction!r}, reason={self.reason.value})"


@dataclass(frozen=True)
class MalformedRecord:
    row: dict
    error: str
    position: int


class ProcessingStats:
    """Counters for a single run, updated by the stream driver."""

    def __init__(self):
        self.applied = 0
        self.rejected = 0
        self.malformed = 0

    def record_applied(self):
        self.applied += 1

    def record_rejected(self):
        self.rejected += 1

    def record_malformed(self):
        self.malformed += 1

    @property
    def seen(self) -> int:
        return self.applied + self.rejected + self.malformed
