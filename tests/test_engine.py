import sys
import os
import asyncio
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from errors import TransactionSourceError
from models import RejectionReason
from payments_engine import PaymentsEngine
from rejections import RejectionLog


def write_csv(tmp_path, lines, name="test.csv"):
    csv_file = tmp_path / name
    csv_file.write_text('\n'.join(lines))
    return str(csv_file)


def by_client(accounts):
    return {account.client_id: account for account in accounts}


class TestPaymentsEngine:
    def test_basic_transactions(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        ])

        engine = PaymentsEngine()
        accounts = by_client(engine.process_file(csv_file))

        assert set(accounts) == {1, 2}

        assert accounts[1].available == Decimal("1.5")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("1.5")

        assert accounts[2].available == Decimal("2.0")
        assert accounts[2].held == Decimal("0")
        assert accounts[2].total == Decimal("2.0")

        assert engine.stats.applied == 4
        assert engine.stats.rejected == 1

    def test_dispute_resolve(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
        ])

        accounts = by_client(PaymentsEngine().process_file(csv_file))

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].locked is False

    def test_chargeback(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        ])

        accounts = by_client(PaymentsEngine().process_file(csv_file))

        assert accounts[1].available == Decimal("0")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True

    def test_out_of_order_dispute_discarded(self, tmp_path):
        """Dispute before deposit is discarded, never retried."""
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "dispute, 1, 1,",
            "deposit, 1, 1, 100.0",
        ])

        accounts = by_client(PaymentsEngine().process_file(csv_file))

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("100")

    def test_insufficient_funds(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 50.0",
            "withdrawal, 1, 2, 100.0",
        ])

        accounts = by_client(PaymentsEngine().process_file(csv_file))

        assert accounts[1].available == Decimal("50")
        assert accounts[1].total == Decimal("50")

    def test_dispute_withdrawal_ignored(self, tmp_path):
        """Disputing a withdrawal should be ignored."""
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "withdrawal, 1, 2, 50.0",
            "dispute, 1, 2,",
        ])

        accounts = by_client(PaymentsEngine().process_file(csv_file))

        assert accounts[1].available == Decimal("50")
        assert accounts[1].held == Decimal("0")

    def test_frozen_account_rejects_operations(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
            "deposit, 1, 2, 50.0",
            "withdrawal, 1, 3, 10.0",
        ])

        accounts = by_client(PaymentsEngine().process_file(csv_file))

        assert accounts[1].available == Decimal("0")
        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True

    def test_duplicate_deposit_discarded(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "deposit, 1, 1, 100.0",
            "deposit, 1, 1, 100.0",
        ])

        rejections = RejectionLog()
        accounts = by_client(PaymentsEngine(rejection_sink=rejections).process_file(csv_file))

        assert accounts[1].available == Decimal("100")
        assert rejections.counts() == {RejectionReason.DUPLICATE_TRANSACTION: 2}

    def test_malformed_rows_do_not_abort(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "# comments are allowed",
            "deposit, 1, 1, 10",
            "refund, 1, 2, 5",
            "deposit, one, 3, 5",
            "deposit, 1, 4",
            "deposit, 1, 5, 2.5",
        ])

        malformed = []
        engine = PaymentsEngine(malformed_sink=malformed.append)
        accounts = by_client(engine.process_file(csv_file))

        assert accounts[1].available == Decimal("12.5")
        assert engine.stats.malformed == 3
        assert len(malformed) == 3

    def test_rejected_rows_create_no_accounts(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 10",
            "dispute, 2, 1,",
            "withdrawal, 3, 2, 5",
            "resolve, 4, 99,",
        ])

        accounts = PaymentsEngine().process_file(csv_file)

        assert [account.client_id for account in accounts] == [1]

    def test_small_queue_keeps_order(self, tmp_path):
        lines = ["type, client, tx, amount"]
        for tx in range(1, 301):
            lines.append(f"deposit, 1, {tx}, 1")
            lines.append(f"dispute, 1, {tx},")
            lines.append(f"resolve, 1, {tx},")

        csv_file = write_csv(tmp_path, lines)
        engine = PaymentsEngine(queue_size=2)
        accounts = by_client(engine.process_file(csv_file))

        assert accounts[1].available == Decimal("300")
        assert accounts[1].held == Decimal("0")
        assert engine.stats.rejected == 0

    def test_missing_file_raises_source_error(self, tmp_path):
        with pytest.raises(TransactionSourceError):
            PaymentsEngine().process_file(str(tmp_path / "missing.csv"))

    def test_process_file_async_matches_sync(self, tmp_path):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 10.0",
            "deposit, 2, 2, 20.0",
            "deposit, 1, 3, 5.0",
            "withdrawal, 1, 4, 3.0",
            "dispute, 1, 3,",
            "chargeback, 1, 3,",
            "deposit, 1, 5, 1.0",
            "dispute, 1, 999,",
            "withdrawal, 2, 6, 1000.0",
        ])

        engine = PaymentsEngine()
        async_accounts = asyncio.run(engine.process_file_async(csv_file))
        sync_accounts = PaymentsEngine().process_file(csv_file)

        assert async_accounts == sync_accounts
        accounts = by_client(async_accounts)
        assert accounts[1].available == Decimal("7.0")
        assert accounts[1].locked is True
        assert accounts[2].available == Decimal("20.0")
        assert engine.stats.rejected == 3

    def test_process_file_async_missing_file(self, tmp_path):
        with pytest.raises(TransactionSourceError):
            asyncio.run(PaymentsEngine().process_file_async(str(tmp_path / "missing.csv")))
