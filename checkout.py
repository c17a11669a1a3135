"""Cart totals and conversion of a cart into a transaction draft."""

from typing import List, Optional, Tuple

from schemas import Product, TransactionCreate, TransactionItem

DEFAULT_TAX_RATE = 0.1

CartLine = Tuple[Product, int]


class CheckoutError(ValueError):
    pass


class EmptyCartError(CheckoutError):
    def __init__(self):
        super().__init__("Cart is empty")


class InsufficientStockError(CheckoutError):
    def __init__(self, product: Product, requested: int):
        self.product = product
        self.requested = requested
        super().__init__(f"Only {product.stock} of {product.name} left in stock, requested {requested}")


def calculate_totals(lines: List[CartLine], tax_rate: float = DEFAULT_TAX_RATE) -> Tuple[float, float, float]:
    subtotal = sum(product.price * quantity for product, quantity in lines)
    tax = subtotal * tax_rate
    return subtotal, tax, subtotal + tax


def build_transaction(
    lines: List[CartLine],
    payment_method: str,
    cashier_id: str,
    customer_id: Optional[str] = None,
    tax_rate: float = DEFAULT_TAX_RATE,
) -> TransactionCreate:
    if not lines:
        raise EmptyCartError()
    for product, quantity in lines:
        if quantity > product.stock:
            raise InsufficientStockError(product, quantity)

    subtotal, tax, total = calculate_totals(lines, tax_rate)
    items = [
        TransactionItem(
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            price=product.price,
            total=product.price * quantity,
        )
        for product, quantity in lines
    ]
    return TransactionCreate(
        items=items,
        subtotal=subtotal,
        tax=tax,
        total=total,
        payment_method=payment_method,
        customer_id=customer_id,
        cashier_id=cashier_id,
    )
