import csv
from decimal import ROUND_HALF_EVEN, Context, Decimal
from typing import Dict, Iterable, Iterator, TextIO

from models import BALANCE_PRECISION, AccountSnapshot

OUTPUT_FIELDS = ("client", "available", "held", "total", "locked")
FOUR_PLACES = Decimal("0.0001")
# Rounds to 4 places, still wide enough for any balance.
EXPORT_CONTEXT = Context(prec=BALANCE_PRECISION, rounding=ROUND_HALF_EVEN)


def format_amount(value: Decimal) -> str:
    """Format decimal with exactly 4 fractional digits."""
    return f"{value.quantize(FOUR_PLACES, context=EXPORT_CONTEXT):f}"


def export_rows(snapshots: Iterable[AccountSnapshot]) -> Iterator[Dict[str, str]]:
    """Render account snapshots as output rows, keeping the order they are given in."""
    for snapshot in snapshots:
        yield {
            "client": str(snapshot.client_id),
            "available": format_amount(snapshot.available),
            "held": format_amount(snapshot.held),
            "total": format_amount(snapshot.total),
            "locked": str(snapshot.locked).lower(),
        }


def write_accounts_csv(snapshots: Iterable[AccountSnapshot], stream: TextIO) -> None:
    writer = csv.DictWriter(stream, fieldnames=OUTPUT_FIELDS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(export_rows(snapshots))
