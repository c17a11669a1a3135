"""
Record schemas for the POS back office

Each collection is stored as a JSON array under its own key. Stored and
served JSON uses camelCase keys (createdAt, productId, ...); Python code uses
the snake_case attribute names.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PaymentMethod = Literal["cash", "card", "digital"]
Role = Literal["admin", "kasir"]

PAYMENT_METHODS = ("cash", "card", "digital")


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProductCreate(Record):
    name: str
    price: float = Field(..., ge=0)
    stock: int = 0
    category: str = ""
    barcode: Optional[str] = None
    image: Optional[str] = Field(None, description="data URI or URL")


class Product(Record):
    id: str
    name: str
    price: float
    stock: int
    category: str = ""
    barcode: Optional[str] = None
    image: Optional[str] = None
    # Older records may lack timestamps
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


def _not_null(value):
    if value is None:
        raise ValueError("may not be null")
    return value


class ProductUpdate(Record):
    # Only fields explicitly set are applied; see model_dump(exclude_unset=True).
    # barcode and image may be cleared with null, the rest may not.
    name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = None
    category: Optional[str] = None
    barcode: Optional[str] = None
    image: Optional[str] = None

    @field_validator("name", "price", "stock", "category")
    @classmethod
    def required_not_null(cls, value):
        return _not_null(value)


class StockUpdate(Record):
    stock: int


class TransactionItem(Record):
    product_id: str
    product_name: str
    quantity: int = Field(..., gt=0)
    price: float
    total: float


class TransactionCreate(Record):
    items: List[TransactionItem]
    subtotal: float
    tax: float
    total: float
    payment_method: PaymentMethod = "cash"
    customer_id: Optional[str] = None
    cashier_id: str


class Transaction(TransactionCreate):
    id: str
    created_at: str


class CustomerCreate(Record):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class Customer(CustomerCreate):
    id: str
    created_at: Optional[str] = None


class CustomerUpdate(Record):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        return _not_null(value)


class DailySales(Record):
    date: str
    total_sales: float = 0
    total_transactions: int = 0
    total_items: int = 0


class TopProduct(Product):
    total_sold: int = 0


class PaymentMethodShare(Record):
    method: PaymentMethod
    count: int
    percentage: float


class InventorySummary(Record):
    low_stock: int
    out_of_stock: int
    stock_value: float


class DashboardSummary(Record):
    todays_revenue: float
    todays_transactions: int
    total_products: int
    total_customers: int
    low_stock_products: int


class StoreSettings(Record):
    store_name: str = "Toko POS"
    tax_rate: float = Field(0.1, ge=0)
    currency: str = "IDR"
    low_stock_threshold: int = Field(10, ge=0)


class User(Record):
    id: str
    username: str
    role: Role
    name: str


class LoginCredentials(Record):
    username: str
    password: str


class SaleLine(Record):
    product_id: str
    quantity: int = Field(..., gt=0)


class SaleRequest(Record):
    items: List[SaleLine]
    payment_method: PaymentMethod = "cash"
    customer_id: Optional[str] = None
