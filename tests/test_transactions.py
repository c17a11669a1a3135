"""
Tests for TransactionRepository and its stock cascade.
"""
from conftest import sale_draft
from schemas import TransactionCreate


class TestTransactionSave:
    def test_save_assigns_id_and_created_at(self, storage, widget):
        transaction = storage.transactions.save(sale_draft((widget, 1)))
        assert transaction.id
        assert transaction.created_at == "2024-01-10T09:30:00.000000Z"
        assert storage.transactions.get_by_id(transaction.id) == transaction

    def test_widget_sale_scenario(self, storage, analytics, widget):
        storage.transactions.save({
            "items": [{"productId": widget.id, "productName": "Widget", "quantity": 2, "price": 1000, "total": 2000}],
            "subtotal": 2000,
            "tax": 200,
            "total": 2200,
            "paymentMethod": "cash",
            "cashierId": "kasir-1",
        })
        assert storage.products.get_by_id(widget.id).stock == 3
        assert analytics.get_total_revenue() == 2200

    def test_decrements_every_item(self, storage, widget, gadget):
        storage.transactions.save(sale_draft((widget, 2), (gadget, 7)))
        assert storage.products.get_by_id(widget.id).stock == 3
        assert storage.products.get_by_id(gadget.id).stock == 13

    def test_repeated_product_lines_decrement_in_order(self, storage, widget):
        storage.transactions.save(sale_draft((widget, 1), (widget, 2)))
        assert storage.products.get_by_id(widget.id).stock == 2

    def test_missing_product_is_skipped(self, storage, widget, gadget):
        storage.products.delete(gadget.id)
        transaction = storage.transactions.save(sale_draft((gadget, 1), (widget, 1)))
        assert storage.transactions.get_by_id(transaction.id) is not None
        assert storage.products.get_by_id(widget.id).stock == 4
        assert storage.products.get_by_id(gadget.id) is None

    def test_overselling_drives_stock_negative(self, storage, widget):
        storage.transactions.save(sale_draft((widget, 8)))
        assert storage.products.get_by_id(widget.id).stock == -3

    def test_accepts_model_draft(self, storage, widget):
        draft = TransactionCreate.model_validate(sale_draft((widget, 1), payment_method="card", customer_id="c-1"))
        transaction = storage.transactions.save(draft)
        assert transaction.payment_method == "card"
        assert transaction.customer_id == "c-1"
        assert transaction.items[0].product_name == "Widget"

    def test_get_all_oldest_first(self, storage, clock, widget):
        first = storage.transactions.save(sale_draft((widget, 1)))
        clock.advance(hours=1)
        second = storage.transactions.save(sale_draft((widget, 1)))
        assert [t.id for t in storage.transactions.get_all()] == [first.id, second.id]
        assert [t.id for t in storage.transactions.get_recent()] == [second.id, first.id]


class TestTransactionQueries:
    def test_get_by_date_range_single_day(self, storage, clock, widget):
        clock.current = clock.current.replace(year=2023, month=12, day=31, hour=23, minute=59)
        storage.transactions.save(sale_draft((widget, 1)))
        clock.advance(minutes=2)
        on_day = storage.transactions.save(sale_draft((widget, 1)))
        clock.advance(days=1)
        storage.transactions.save(sale_draft((widget, 1)))

        result = storage.transactions.get_by_date_range("2024-01-01", "2024-01-01")
        assert [t.id for t in result] == [on_day.id]
        assert all(t.created_at.startswith("2024-01-01") for t in result)

    def test_get_by_date_range_is_inclusive(self, storage, clock, widget):
        for _ in range(3):
            storage.transactions.save(sale_draft((widget, 1)))
            clock.advance(days=1)
        assert len(storage.transactions.get_by_date_range("2024-01-10", "2024-01-12")) == 3
        assert len(storage.transactions.get_by_date_range("2024-01-11", "2024-01-12")) == 2
        assert storage.transactions.get_by_date_range("2024-01-13", "2024-01-01") == []

    def test_todays_transactions(self, storage, clock, widget):
        storage.transactions.save(sale_draft((widget, 1)))
        clock.advance(days=1)
        today = storage.transactions.save(sale_draft((widget, 1)))
        assert [t.id for t in storage.transactions.get_todays_transactions()] == [today.id]

    def test_search(self, storage, clock, widget, gadget):
        first = storage.transactions.save(sale_draft((widget, 1)))
        clock.advance(seconds=1)
        second = storage.transactions.save(sale_draft((gadget, 1)))
        assert [t.id for t in storage.transactions.search("GADG")] == [second.id]
        assert [t.id for t in storage.transactions.search(first.id[:8])] == [first.id]
        assert len(storage.transactions.search("")) == 2
