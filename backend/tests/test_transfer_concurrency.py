# Overview: Threaded transfer approvals against a file-backed SQLite database.

"""
Concurrency tests for the transfer protocol.

Two transfers of 6 units each race against a department holding 10. The
losing thread either hits the decrement guard or a lock conflict whose
retry then fails preflight; in every interleaving exactly one transfer
completes and the source never goes negative.
"""
import os
import tempfile
import threading
import unittest

from hotelops import create_app
from hotelops.extensions import db
from hotelops.models import MovementRecord
from hotelops.services import directory_service, stock_service, transfer_service


class TransferConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "TRANSFER_MAX_ATTEMPTS": 5,
            "TRANSFER_BACKOFF_BASE_SECONDS": 0.05,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            directory_service.create_department("STORE", "Central Store")
            directory_service.create_section("STORE", "Bar", "bar")
            item = stock_service.create_item("Tonic 200ml", "drink", unit_price_cents=300)
            self.item_id = item.id

            source = directory_service.resolve_scope("STORE").scope
            stock_service.get_ledger().restock(source, self.item_id, 10, reference="SEED")

            items = [{"product_type": "drink", "product_id": self.item_id, "quantity": 6}]
            first = transfer_service.create_transfer("STORE", "STORE:bar", items)
            second = transfer_service.create_transfer("STORE", "STORE:bar", items)
            self.transfer_ids = [first.id, second.id]

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _balances(self):
        with self.app.app_context():
            ledger = stock_service.get_ledger()
            source = ledger.get_balance(self.item_id, directory_service.resolve_scope("STORE").scope)
            bar = ledger.get_balance(self.item_id, directory_service.resolve_scope("STORE:bar").scope)
            return source.quantity, bar.quantity

    def test_concurrent_approvals_never_oversell(self):
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(self.transfer_ids))

        def worker(transfer_id):
            with self.app.app_context():
                try:
                    barrier.wait()
                    result = transfer_service.approve_transfer(transfer_id)
                    with lock:
                        results.append((transfer_id, result.success))
                except Exception as exc:
                    with lock:
                        results.append((transfer_id, exc))
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(tid,)) for tid in self.transfer_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        outcomes = [outcome for _, outcome in results]
        self.assertEqual(len(outcomes), 2)
        self.assertFalse([o for o in outcomes if isinstance(o, Exception)], outcomes)
        self.assertEqual(outcomes.count(True), 1)

        source_qty, bar_qty = self._balances()
        self.assertEqual(source_qty, 4)
        self.assertEqual(bar_qty, 6)

        winner = next(tid for tid, outcome in results if outcome is True)
        with self.app.app_context():
            statuses = {
                tid: transfer_service.get_transfer(tid).status for tid in self.transfer_ids
            }
            out_rows = (
                db.session.query(MovementRecord)
                .filter_by(reason="transfer-out", item_id=self.item_id)
                .all()
            )
        self.assertEqual(statuses[winner], "completed")
        self.assertEqual(sorted(statuses.values()), ["completed", "pending"])
        self.assertEqual([m.quantity for m in out_rows], [6])

    def test_sequential_approvals_respect_floor(self):
        with self.app.app_context():
            first = transfer_service.approve_transfer(self.transfer_ids[0])
            second = transfer_service.approve_transfer(self.transfer_ids[1])

        self.assertTrue(first.success)
        self.assertFalse(second.success)
        self.assertEqual(self._balances(), (4, 6))


if __name__ == "__main__":
    unittest.main()
