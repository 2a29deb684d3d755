class PaymentsError(Exception):
    """Base class for all errors raised by the payments ledger."""


class MalformedRecordError(PaymentsError, ValueError):
    """
    A single input record could not be turned into a transaction.
    The stream driver skips such records, they never abort a run.
    """


class TransactionSourceError(PaymentsError):
    """
    The record source itself failed (unreadable file, broken stream).
    This is not handled by the ledger and propagates to the caller.
    """
