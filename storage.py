"""
Repositories for products, transactions, customers and store settings.

Each repository owns one key of the KeyValueStore and works read-all,
mutate, write-all on every call. Repositories are plain objects built once
by init_storage() and passed to whoever needs them.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from database import (
    CUSTOMERS_KEY,
    PRODUCTS_KEY,
    SETTINGS_KEY,
    TRANSACTIONS_KEY,
    KeyValueStore,
)
from schemas import (
    Customer,
    CustomerCreate,
    CustomerUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
    StoreSettings,
    Transaction,
    TransactionCreate,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

SAMPLE_PRODUCTS = [
    {"name": "Kopi Americano", "price": 25000, "stock": 50, "category": "Minuman"},
    {"name": "Nasi Goreng", "price": 35000, "stock": 30, "category": "Makanan"},
    {"name": "Es Teh Manis", "price": 12000, "stock": 100, "category": "Minuman"},
    {"name": "Ayam Bakar", "price": 45000, "stock": 20, "category": "Makanan"},
    {"name": "Jus Jeruk", "price": 18000, "stock": 40, "category": "Minuman"},
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def to_iso(moment: datetime) -> str:
    """ISO 8601 UTC timestamp with microseconds and a Z suffix."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def date_part(timestamp: str) -> str:
    return timestamp.split("T")[0]


class Repository:
    key: str = ""
    model = None

    def __init__(self, store: KeyValueStore, clock: Clock = utc_now, id_factory: Callable[[], str] = new_id):
        self.store = store
        self.clock = clock
        self.id_factory = id_factory

    def now(self) -> str:
        return to_iso(self.clock())

    def _rows(self) -> list:
        """Stored rows in order: validated records, or the raw value where validation failed.

        Raw rows are written back untouched so a bad record never takes the
        rest of the collection with it.
        """
        raw = self.store.read(self.key, [])
        if not isinstance(raw, list):
            logger.error("Expected a list under %s, got %s", self.key, type(raw).__name__)
            return []
        rows = []
        for item in raw:
            try:
                rows.append(self.model.model_validate(item))
            except ValidationError:
                logger.exception("Skipping invalid record stored under %s", self.key)
                rows.append(item)
        return rows

    def _load(self) -> list:
        return [row for row in self._rows() if isinstance(row, self.model)]

    def _persist(self, rows: list) -> None:
        self.store.write(self.key, [r.to_storage() if isinstance(r, self.model) else r for r in rows])

    def get_all(self) -> list:
        return self._load()

    def get_by_id(self, id: str):
        for record in self._load():
            if record.id == id:
                return record
        return None

    def _append(self, record):
        rows = self._rows()
        rows.append(record)
        self._persist(rows)
        return record

    def _merge(self, id: str, changes: Dict, **extra):
        rows = self._rows()
        for index, row in enumerate(rows):
            if isinstance(row, self.model) and row.id == id:
                rows[index] = self.model.model_validate({**row.model_dump(), **changes, **extra})
                self._persist(rows)
                return rows[index]
        return None

    def delete(self, id: str) -> bool:
        rows = self._rows()
        remaining = [r for r in rows if _row_id(r) != id]
        if len(remaining) == len(rows):
            return False
        self._persist(remaining)
        return True


def _row_id(row) -> Optional[str]:
    if isinstance(row, dict):
        return row.get("id")
    return getattr(row, "id", None)


class ProductRepository(Repository):
    key = PRODUCTS_KEY
    model = Product

    def save(self, draft: Union[ProductCreate, Dict]) -> Product:
        if not isinstance(draft, ProductCreate):
            draft = ProductCreate.model_validate(draft)
        now = self.now()
        product = Product(**draft.model_dump(), id=self.id_factory(), created_at=now, updated_at=now)
        return self._append(product)

    def update(self, id: str, updates: Union[ProductUpdate, Dict]) -> Optional[Product]:
        if not isinstance(updates, ProductUpdate):
            updates = ProductUpdate.model_validate(updates)
        current = self.get_by_id(id)
        if current is None:
            return None
        return self._merge(id, updates.model_dump(exclude_unset=True), updated_at=self._touch(current.updated_at))

    def update_stock(self, id: str, new_stock: int) -> bool:
        # No lower bound: callers decide whether overselling is allowed
        return self.update(id, ProductUpdate(stock=new_stock)) is not None

    def _touch(self, previous: Optional[str]) -> str:
        stamp = self.now()
        if previous is None or stamp > previous:
            return stamp
        try:
            last = datetime.fromisoformat(previous.replace("Z", "+00:00"))
        except ValueError:
            return stamp
        return to_iso(last + timedelta(microseconds=1))

    def search(self, term: str = "", category: Optional[str] = None) -> List[Product]:
        term = (term or "").lower()
        results = []
        for product in self._load():
            matches_term = term in product.name.lower() or (product.barcode is not None and term in product.barcode)
            matches_category = not category or product.category == category
            if matches_term and matches_category:
                results.append(product)
        return results

    def categories(self) -> List[str]:
        return list(dict.fromkeys(p.category for p in self._load()))

    def low_stock(self, threshold: int = 10) -> List[Product]:
        return [p for p in self._load() if p.stock < threshold]


class TransactionRepository(Repository):
    key = TRANSACTIONS_KEY
    model = Transaction

    def __init__(self, store: KeyValueStore, products: ProductRepository, clock: Clock = utc_now,
                 id_factory: Callable[[], str] = new_id):
        super().__init__(store, clock, id_factory)
        self.products = products

    def save(self, draft: Union[TransactionCreate, Dict]) -> Transaction:
        if not isinstance(draft, TransactionCreate):
            draft = TransactionCreate.model_validate(draft)
        transaction = Transaction(**draft.model_dump(), id=self.id_factory(), created_at=self.now())
        self._append(transaction)

        # Decrement stock item by item; vanished products are skipped
        for item in transaction.items:
            product = self.products.get_by_id(item.product_id)
            if product:
                self.products.update_stock(item.product_id, product.stock - item.quantity)

        return transaction

    def get_by_date_range(self, start_date: str, end_date: str) -> List[Transaction]:
        return [t for t in self._load() if start_date <= date_part(t.created_at) <= end_date]

    def get_todays_transactions(self) -> List[Transaction]:
        today = date_part(self.now())
        return self.get_by_date_range(today, today)

    def get_recent(self) -> List[Transaction]:
        return sorted(self._load(), key=lambda t: t.created_at, reverse=True)

    def search(self, term: str = "") -> List[Transaction]:
        term = (term or "").lower()
        return [
            t for t in self.get_recent()
            if term in t.id.lower() or any(term in item.product_name.lower() for item in t.items)
        ]


class CustomerRepository(Repository):
    key = CUSTOMERS_KEY
    model = Customer

    def save(self, draft: Union[CustomerCreate, Dict]) -> Customer:
        if not isinstance(draft, CustomerCreate):
            draft = CustomerCreate.model_validate(draft)
        customer = Customer(**draft.model_dump(), id=self.id_factory(), created_at=self.now())
        return self._append(customer)

    def update(self, id: str, updates: Union[CustomerUpdate, Dict]) -> Optional[Customer]:
        if not isinstance(updates, CustomerUpdate):
            updates = CustomerUpdate.model_validate(updates)
        return self._merge(id, updates.model_dump(exclude_unset=True))

    def search(self, term: str = "") -> List[Customer]:
        term = (term or "").lower()
        return [
            c for c in self._load()
            if term in c.name.lower()
            or (c.email is not None and term in c.email.lower())
            or (c.phone is not None and term in c.phone)
        ]


class SettingsRepository:
    """Store-wide settings kept as a single object under pos_settings."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self) -> StoreSettings:
        raw = self.store.read(SETTINGS_KEY, {})
        try:
            return StoreSettings.model_validate(raw)
        except ValidationError:
            logger.exception("Invalid settings stored under %s", SETTINGS_KEY)
            return StoreSettings()

    def save(self, settings: StoreSettings) -> StoreSettings:
        self.store.write(SETTINGS_KEY, settings.to_storage())
        return settings


@dataclass
class Storage:
    store: KeyValueStore
    products: ProductRepository
    transactions: TransactionRepository
    customers: CustomerRepository
    settings: SettingsRepository


def init_storage(backend, clock: Clock = utc_now, id_factory: Callable[[], str] = new_id) -> Storage:
    store = KeyValueStore(backend)
    products = ProductRepository(store, clock, id_factory)
    return Storage(
        store=store,
        products=products,
        transactions=TransactionRepository(store, products, clock, id_factory),
        customers=CustomerRepository(store, clock, id_factory),
        settings=SettingsRepository(store),
    )


def initialize_sample_data(products: ProductRepository) -> int:
    """Seed the sample catalog when there are no products. Returns how many were added."""
    if products.get_all():
        return 0
    for product in SAMPLE_PRODUCTS:
        products.save(product)
    logger.info("Seeded %d sample products", len(SAMPLE_PRODUCTS))
    return len(SAMPLE_PRODUCTS)
