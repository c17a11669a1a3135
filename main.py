import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, ValidationError

from analytics import AnalyticsAggregator, export_daily_sales_csv, get_growth_rate
from auth import authenticate, can_access, create_access_token, decode_access_token, get_user
from checkout import CheckoutError, build_transaction
from config import Settings, configure_logging
from config import settings as default_settings
from database import create_backend
from schemas import (
    Customer,
    CustomerCreate,
    CustomerUpdate,
    DailySales,
    LoginCredentials,
    PaymentMethodShare,
    Product,
    ProductCreate,
    ProductUpdate,
    SaleRequest,
    StockUpdate,
    StoreSettings,
    TopProduct,
    Transaction,
    User,
)
from storage import Storage, init_storage, initialize_sample_data, utc_now

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# Dependencies

def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_analytics(request: Request) -> AnalyticsAggregator:
    return request.app.state.analytics


def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> User:
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    config: Settings = request.app.state.settings
    username = decode_access_token(token, config.secret_key, config.algorithm)
    if username is None:
        raise credentials_exception
    user = get_user(username)
    if user is None:
        raise credentials_exception
    return user


def require_roles(*roles: str):
    def checker(user: User = Depends(get_current_user)) -> User:
        if not can_access(user, list(roles)):
            raise HTTPException(status_code=403, detail="Not allowed for this role")
        return user
    return checker


# Helper to accept either JSON or form for legacy compatibility
async def parse_login_request(request: Request) -> LoginCredentials:
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        return LoginCredentials(username=form.get("username") or "", password=form.get("password") or "")
    data = await request.json()
    try:
        return LoginCredentials(**data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))


def create_app(config: Optional[Settings] = None, backend=None, clock=utc_now) -> FastAPI:
    config = config or default_settings
    configure_logging(config.log_level)

    storage = init_storage(backend if backend is not None else create_backend(config), clock=clock)
    logger.info("Using %s storage backend", storage.store.backend.name)
    if config.seed_sample_data:
        initialize_sample_data(storage.products)

    app = FastAPI(title="POS Back Office API")
    app.state.settings = config
    app.state.storage = storage
    app.state.analytics = AnalyticsAggregator(storage.transactions, storage.products, storage.customers)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def read_root():
        return {"message": "POS Back Office API"}

    @app.get("/health")
    def health(storage: Storage = Depends(get_storage)):
        return {"status": "ok", "storage": storage.store.backend.status()}

    # Auth routes
    @app.post("/auth/token", response_model=Token)
    async def login(request: Request):
        credentials = await parse_login_request(request)
        result = authenticate(credentials)
        if not result.success:
            raise HTTPException(status_code=401, detail=result.error)
        token = create_access_token(
            {"sub": result.user.username},
            config.secret_key,
            config.algorithm,
            timedelta(minutes=config.access_token_expire_minutes),
        )
        return Token(access_token=token)

    @app.get("/auth/me", response_model=User)
    def me(user: User = Depends(get_current_user)):
        return user

    # Products
    @app.get("/products", response_model=List[Product])
    def list_products(q: str = "", category: Optional[str] = None, storage: Storage = Depends(get_storage),
                      _: User = Depends(get_current_user)):
        return storage.products.search(q, category)

    @app.get("/products/categories", response_model=List[str])
    def list_categories(storage: Storage = Depends(get_storage), _: User = Depends(get_current_user)):
        return storage.products.categories()

    @app.get("/products/{product_id}", response_model=Product)
    def get_product(product_id: str, storage: Storage = Depends(get_storage), _: User = Depends(get_current_user)):
        product = storage.products.get_by_id(product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        return product

    @app.post("/products", response_model=Product, status_code=201)
    def create_product(product: ProductCreate, storage: Storage = Depends(get_storage),
                       _: User = Depends(require_roles("admin"))):
        return storage.products.save(product)

    @app.put("/products/{product_id}", response_model=Product)
    def update_product(product_id: str, update: ProductUpdate, storage: Storage = Depends(get_storage),
                       _: User = Depends(require_roles("admin"))):
        product = storage.products.update(product_id, update)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        return product

    @app.put("/products/{product_id}/stock")
    def set_stock(product_id: str, req: StockUpdate, storage: Storage = Depends(get_storage),
                  _: User = Depends(require_roles("admin"))):
        if not storage.products.update_stock(product_id, req.stock):
            raise HTTPException(status_code=404, detail="Product not found")
        return {"status": "ok"}

    @app.delete("/products/{product_id}")
    def delete_product(product_id: str, storage: Storage = Depends(get_storage),
                       _: User = Depends(require_roles("admin"))):
        if not storage.products.delete(product_id):
            raise HTTPException(status_code=404, detail="Product not found")
        return {"status": "ok"}

    # Sales
    @app.post("/sales", response_model=Transaction, status_code=201)
    def create_sale(req: SaleRequest, storage: Storage = Depends(get_storage),
                    user: User = Depends(get_current_user)):
        lines = []
        for line in req.items:
            product = storage.products.get_by_id(line.product_id)
            if not product:
                raise HTTPException(status_code=404, detail=f"Product {line.product_id} not found")
            lines.append((product, line.quantity))
        if req.customer_id and not storage.customers.get_by_id(req.customer_id):
            raise HTTPException(status_code=404, detail="Customer not found")

        try:
            draft = build_transaction(
                lines,
                payment_method=req.payment_method,
                cashier_id=user.id,
                customer_id=req.customer_id,
                tax_rate=storage.settings.get().tax_rate,
            )
        except CheckoutError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return storage.transactions.save(draft)

    @app.get("/transactions", response_model=List[Transaction])
    def list_transactions(q: str = "", storage: Storage = Depends(get_storage), _: User = Depends(get_current_user)):
        return storage.transactions.search(q)

    @app.get("/transactions/today", response_model=List[Transaction])
    def todays_transactions(storage: Storage = Depends(get_storage), _: User = Depends(get_current_user)):
        return storage.transactions.get_todays_transactions()

    @app.get("/transactions/range", response_model=List[Transaction])
    def transactions_in_range(start: str, end: str, storage: Storage = Depends(get_storage),
                              _: User = Depends(get_current_user)):
        return storage.transactions.get_by_date_range(start, end)

    @app.get("/transactions/{transaction_id}", response_model=Transaction)
    def get_transaction(transaction_id: str, storage: Storage = Depends(get_storage),
                        _: User = Depends(get_current_user)):
        transaction = storage.transactions.get_by_id(transaction_id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found")
        return transaction

    # Customers
    @app.get("/customers", response_model=List[Customer])
    def list_customers(q: str = "", storage: Storage = Depends(get_storage), _: User = Depends(get_current_user)):
        return sorted(storage.customers.search(q), key=lambda c: c.created_at or "", reverse=True)

    @app.post("/customers", response_model=Customer, status_code=201)
    def create_customer(customer: CustomerCreate, storage: Storage = Depends(get_storage),
                        _: User = Depends(get_current_user)):
        return storage.customers.save(customer)

    @app.put("/customers/{customer_id}", response_model=Customer)
    def update_customer(customer_id: str, update: CustomerUpdate, storage: Storage = Depends(get_storage),
                        _: User = Depends(get_current_user)):
        customer = storage.customers.update(customer_id, update)
        if not customer:
            raise HTTPException(status_code=404, detail="Customer not found")
        return customer

    @app.delete("/customers/{customer_id}")
    def delete_customer(customer_id: str, storage: Storage = Depends(get_storage),
                        _: User = Depends(get_current_user)):
        if not storage.customers.delete(customer_id):
            raise HTTPException(status_code=404, detail="Customer not found")
        return {"status": "ok"}

    # Reports
    @app.get("/reports/summary")
    def dashboard_summary(storage: Storage = Depends(get_storage), analytics: AnalyticsAggregator = Depends(get_analytics),
                          _: User = Depends(get_current_user)):
        return analytics.get_dashboard_summary(storage.settings.get().low_stock_threshold)

    @app.get("/reports/daily-sales", response_model=List[DailySales])
    def daily_sales(days: int = 30, analytics: AnalyticsAggregator = Depends(get_analytics),
                    _: User = Depends(get_current_user)):
        return analytics.get_daily_sales(days)

    @app.get("/reports/top-products", response_model=List[TopProduct])
    def top_products(limit: int = 10, analytics: AnalyticsAggregator = Depends(get_analytics),
                     _: User = Depends(get_current_user)):
        return analytics.get_top_products(limit)

    @app.get("/reports/revenue")
    def revenue(days: int = 30, analytics: AnalyticsAggregator = Depends(get_analytics),
                _: User = Depends(get_current_user)):
        return {
            "total": analytics.get_total_revenue(),
            "today": analytics.get_todays_revenue(),
            "growth_rate": get_growth_rate(analytics.get_daily_sales(days)),
        }

    @app.get("/reports/payment-methods", response_model=List[PaymentMethodShare])
    def payment_methods(analytics: AnalyticsAggregator = Depends(get_analytics), _: User = Depends(get_current_user)):
        return analytics.get_payment_method_breakdown()

    @app.get("/reports/inventory")
    def inventory(storage: Storage = Depends(get_storage), analytics: AnalyticsAggregator = Depends(get_analytics),
                  _: User = Depends(get_current_user)):
        return analytics.get_inventory_summary(storage.settings.get().low_stock_threshold)

    @app.get("/reports/export", response_class=PlainTextResponse)
    def export_sales(days: int = 30, analytics: AnalyticsAggregator = Depends(get_analytics),
                     _: User = Depends(get_current_user)):
        return PlainTextResponse(export_daily_sales_csv(analytics.get_daily_sales(days)), media_type="text/csv")

    # Settings
    @app.get("/settings", response_model=StoreSettings)
    def get_settings(storage: Storage = Depends(get_storage), _: User = Depends(get_current_user)):
        return storage.settings.get()

    @app.put("/settings", response_model=StoreSettings)
    def update_settings(s: StoreSettings, storage: Storage = Depends(get_storage),
                        _: User = Depends(require_roles("admin"))):
        return storage.settings.save(s)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)
