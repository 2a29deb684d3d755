import asyncio
import sys
import logging

from errors import TransactionSourceError
from exporter import write_accounts_csv
from payments_engine import PaymentsEngine

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
    stream=sys.stderr,
)

USAGE = "Usage: python main.py [--async] <input.csv>"


def main(argv=None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    use_async = "--async" in args
    if use_async:
        args.remove("--async")

    if len(args) != 1:
        print(USAGE, file=sys.stderr)
        return 1

    filepath = args[0]
    engine = PaymentsEngine()
    try:
        if use_async:
            accounts = asyncio.run(engine.process_file_async(filepath))
        else:
            accounts = engine.process_file(filepath)
    except TransactionSourceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    write_accounts_csv(sorted(accounts, key=lambda account: account.client_id), sys.stdout)

    stats = engine.stats
    print(
        f"Applied: {stats.applied}, "
        f"Rejected: {stats.rejected}, "
        f"Malformed: {stats.malformed}",
        file=sys.stderr,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
