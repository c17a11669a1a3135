"""
Sales reports derived from the transaction and product repositories.

Nothing here writes; every figure is recomputed from a full scan.
"""

import csv
from datetime import timedelta
from io import StringIO
from typing import Dict, List, Optional

from schemas import (
    PAYMENT_METHODS,
    DailySales,
    DashboardSummary,
    InventorySummary,
    PaymentMethodShare,
    TopProduct,
)
from storage import CustomerRepository, ProductRepository, TransactionRepository, date_part, to_iso

LOW_STOCK_THRESHOLD = 10


class AnalyticsAggregator:
    def __init__(self, transactions: TransactionRepository, products: ProductRepository,
                 customers: Optional[CustomerRepository] = None):
        self.transactions = transactions
        self.products = products
        self.customers = customers

    def get_daily_sales(self, days: int = 30) -> List[DailySales]:
        """One bucket per calendar day for the last ``days`` days, oldest first.

        Days without sales are present with zero totals. Transactions outside
        the window are ignored.
        """
        today = self.transactions.clock()
        buckets: Dict[str, DailySales] = {}
        for offset in range(days - 1, -1, -1):
            day = date_part(to_iso(today - timedelta(days=offset)))
            buckets[day] = DailySales(date=day)

        for transaction in self.transactions.get_all():
            bucket = buckets.get(date_part(transaction.created_at))
            if bucket is not None:
                bucket.total_sales += transaction.total
                bucket.total_transactions += 1
                bucket.total_items += sum(item.quantity for item in transaction.items)

        return list(buckets.values())

    def get_top_products(self, limit: int = 10) -> List[TopProduct]:
        sold: Dict[str, int] = {}
        for transaction in self.transactions.get_all():
            for item in transaction.items:
                sold[item.product_id] = sold.get(item.product_id, 0) + item.quantity

        ranked = [
            TopProduct(**product.model_dump(), total_sold=sold.get(product.id, 0))
            for product in self.products.get_all()
        ]
        # sorted() is stable, so ties keep catalog order
        ranked = sorted(ranked, key=lambda p: p.total_sold, reverse=True)
        return ranked[:max(limit, 0)]

    def get_total_revenue(self) -> float:
        return sum(t.total for t in self.transactions.get_all())

    def get_todays_revenue(self) -> float:
        return sum(t.total for t in self.transactions.get_todays_transactions())

    def get_payment_method_breakdown(self) -> List[PaymentMethodShare]:
        transactions = self.transactions.get_all()
        shares = []
        for method in PAYMENT_METHODS:
            count = len([t for t in transactions if t.payment_method == method])
            percentage = count / len(transactions) * 100 if transactions else 0.0
            shares.append(PaymentMethodShare(method=method, count=count, percentage=percentage))
        return shares

    def get_inventory_summary(self, threshold: int = LOW_STOCK_THRESHOLD) -> InventorySummary:
        products = self.products.get_all()
        return InventorySummary(
            low_stock=len(self.products.low_stock(threshold)),
            out_of_stock=len([p for p in products if p.stock == 0]),
            stock_value=sum(p.price * p.stock for p in products),
        )

    def get_dashboard_summary(self, threshold: int = LOW_STOCK_THRESHOLD) -> DashboardSummary:
        todays = self.transactions.get_todays_transactions()
        products = self.products.get_all()
        return DashboardSummary(
            todays_revenue=sum(t.total for t in todays),
            todays_transactions=len(todays),
            total_products=len(products),
            total_customers=len(self.customers.get_all()) if self.customers else 0,
            low_stock_products=len(self.products.low_stock(threshold)),
        )


def get_growth_rate(daily_sales: List[DailySales]) -> float:
    """Percent change of the second half of the series over the first half."""
    middle = len(daily_sales) // 2
    previous = sum(day.total_sales for day in daily_sales[:middle])
    current = sum(day.total_sales for day in daily_sales[middle:])
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def export_daily_sales_csv(daily_sales: List[DailySales]) -> str:
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(["date", "total_sales", "total_transactions", "total_items"])
    for day in daily_sales:
        writer.writerow([day.date, day.total_sales, day.total_transactions, day.total_items])
    return output.getvalue()
