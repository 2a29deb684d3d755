import asyncio
import csv
import re
from decimal import Decimal
from typing import AsyncIterator, Dict, Iterable, Iterator, Mapping, Optional, TextIO

from errors import MalformedRecordError
from models import (
    MAX_AMOUNT_INTEGER_DIGITS,
    MAX_AMOUNT_SCALE,
    MAX_CLIENT_ID,
    MAX_TRANSACTION_ID,
    Chargeback,
    Deposit,
    Dispute,
    Resolve,
    TransactionRecord,
    TransactionType,
    Withdrawal,
)

COMMENT_PREFIX = "#"
# Plain decimal notation only: no exponent, no digit separators, ASCII digits.
AMOUNT_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)", re.ASCII)


def parse_row(row: Mapping[str, Optional[str]]) -> TransactionRecord:
    """
    Parse a CSV row into a transaction record.

    Keys and values are stripped, the type tag is case-insensitive, and the
    amount column is only read for deposits and withdrawals.

    Raises:
        MalformedRecordError: the row cannot be turned into a transaction.
    """
    normalized = _normalize(row)

    try:
        transaction_type = TransactionType(normalized.get("type", "").lower())
    except ValueError:
        raise MalformedRecordError(f"unknown transaction type {normalized.get('type')!r}") from None

    client_id = _parse_unsigned(normalized, "client", MAX_CLIENT_ID)
    transaction_id = _parse_unsigned(normalized, "tx", MAX_TRANSACTION_ID)

    match transaction_type:
        case TransactionType.DEPOSIT:
            return Deposit(transaction_id, client_id, _parse_amount(normalized))
        case TransactionType.WITHDRAWAL:
            return Withdrawal(transaction_id, client_id, _parse_amount(normalized))
        case TransactionType.DISPUTE:
            return Dispute(client_id, transaction_id)
        case TransactionType.RESOLVE:
            return Resolve(client_id, transaction_id)
        case TransactionType.CHARGEBACK:
            return Chargeback(client_id, transaction_id)


def _normalize(row: Mapping[str, Optional[str]]) -> Dict[str, str]:
    normalized = {}
    for key, value in row.items():
        # DictReader puts surplus columns under a None key
        if key is None:
            continue
        normalized[key.strip().lower()] = value.strip() if isinstance(value, str) else ""
    return normalized


def _parse_unsigned(normalized: Dict[str, str], field: str, maximum: int) -> int:
    raw = normalized.get(field, "")
    if not (raw.isascii() and raw.isdigit()):
        raise MalformedRecordError(f"{field} is not an unsigned integer: {raw!r}")
    value = int(raw)
    if value > maximum:
        raise MalformedRecordError(f"{field} out of range: {value}")
    return value


def _parse_amount(normalized: Dict[str, str]) -> Decimal:
    raw = normalized.get("amount", "")
    if not raw:
        raise MalformedRecordError("amount is required for deposits and withdrawals")
    if not AMOUNT_PATTERN.fullmatch(raw):
        raise MalformedRecordError(f"amount is not a decimal: {raw!r}")
    amount = Decimal(raw)
    if amount.adjusted() >= MAX_AMOUNT_INTEGER_DIGITS:
        raise MalformedRecordError(f"amount out of range: {raw!r}")
    if -amount.as_tuple().exponent > MAX_AMOUNT_SCALE:
        raise MalformedRecordError(f"amount has more than {MAX_AMOUNT_SCALE} fractional digits: {raw!r}")
    return amount


def _uncommented(lines: Iterable[str]) -> Iterator[str]:
    for line in lines:
        if not line.lstrip().startswith(COMMENT_PREFIX):
            yield line


def iter_csv_rows(stream: TextIO) -> Iterator[Dict[str, Optional[str]]]:
    """
    Read rows lazily from a CSV stream with a ``type,client,tx,amount`` header.
    Short rows (dispute, resolve, chargeback without an amount) and
    ``#`` comment lines are allowed.
    """
    reader = csv.DictReader(_uncommented(stream), restval="")
    yield from reader


async def aiter_csv_rows(filepath: str) -> AsyncIterator[Dict[str, Optional[str]]]:
    """
    Async variant of ``iter_csv_rows`` over a file path. Each row is read off
    the event loop, so awaiting the next row is the only suspension point.
    """
    with open(filepath, "r", newline="") as f:
        rows = iter_csv_rows(f)
        while True:
            row = await asyncio.to_thread(next, rows, None)
            if row is None:
                break
            yield row
