import time
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import DocumentStore, build_store, ensure_indexes
from errors import AppError, ErrorKind, STATUS_CODES
from gateway import PaymentGateway, build_gateway
from log_config import add_context, clear_context, configure_logging, get_logger
from orders import OrderManager
from payments import PaymentBridge
from products import ProductCatalog
from schemas import (
    CheckoutRequest,
    ConfirmPaymentRequest,
    OrderIn,
    OrderStatusUpdate,
    ProductIn,
    ProductUpdate,
    RoleChange,
    SuspendRequest,
    TrackingStepIn,
    UserIn,
)
from settings import Settings
from tracking import TrackingLog
from users import UserDirectory

logger = get_logger(__name__)

router = APIRouter()


# Dependencies
def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_users(request: Request) -> UserDirectory:
    return request.app.state.users


def get_products(request: Request) -> ProductCatalog:
    return request.app.state.products


def get_orders(request: Request) -> OrderManager:
    return request.app.state.orders


def get_payments(request: Request) -> PaymentBridge:
    return request.app.state.payments


def get_tracking(request: Request) -> TrackingLog:
    return request.app.state.tracking


@router.get("/")
def root():
    return {"message": "Textila Garments Order & Production API Running"}


@router.get("/test")
def test_database(store: DocumentStore = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
    }
    try:
        store.ping()
        response["database"] = "✅ Connected"
        response["collections"] = store.collection_names()[:10]
    except Exception as e:
        response["database"] = f"⚠️ {str(e)[:80]}"
    return response


# Users (identity is handled client side; role checks are not enforced here)
@router.post("/users")
def register_user(user: UserIn, users: UserDirectory = Depends(get_users)):
    return users.register(user)


@router.get("/users")
def list_users(users: UserDirectory = Depends(get_users)):
    return users.list()


@router.get("/users/role/{email}")
def user_by_email(email: str, users: UserDirectory = Depends(get_users)):
    return users.get_by_email(email)


@router.patch("/users/{user_id}/role")
def change_role(user_id: str, payload: RoleChange, users: UserDirectory = Depends(get_users)):
    return users.change_role(user_id, payload.role)


@router.patch("/users/{user_id}/approve")
def approve_user(user_id: str, users: UserDirectory = Depends(get_users)):
    return users.approve(user_id)


@router.patch("/users/{user_id}/suspend")
def suspend_user(user_id: str, payload: SuspendRequest, users: UserDirectory = Depends(get_users)):
    return users.suspend(user_id, payload.suspend_reason)


# Products
@router.post("/products")
def create_product(product: ProductIn, products: ProductCatalog = Depends(get_products)):
    return products.create(product)


@router.get("/products")
def list_products(category: Optional[str] = None, products: ProductCatalog = Depends(get_products)):
    return products.list(category)


@router.get("/products/home")
def home_products(products: ProductCatalog = Depends(get_products)):
    return products.home()


@router.get("/products/{product_id}")
def get_product(product_id: str, products: ProductCatalog = Depends(get_products)):
    return products.get(product_id)


@router.patch("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, products: ProductCatalog = Depends(get_products)):
    return products.update(product_id, payload)


@router.delete("/products/{product_id}")
def delete_product(product_id: str, products: ProductCatalog = Depends(get_products)):
    return products.delete(product_id)


# Orders
@router.post("/orders")
def create_order(order: OrderIn, orders: OrderManager = Depends(get_orders)):
    return orders.create(order)


@router.get("/orders")
def list_orders(orders: OrderManager = Depends(get_orders)):
    return orders.list()


@router.get("/orders/user/{email}")
def list_user_orders(email: str, orders: OrderManager = Depends(get_orders)):
    return orders.list(buyer_email=email)


@router.post("/orders/confirm-payment")
def confirm_payment(payload: ConfirmPaymentRequest, payments: PaymentBridge = Depends(get_payments)):
    return payments.confirm(payload.session_id)


@router.get("/orders/{order_id}")
def get_order(order_id: str, orders: OrderManager = Depends(get_orders)):
    return orders.get(order_id)


@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: str, payload: OrderStatusUpdate, orders: OrderManager = Depends(get_orders)):
    return orders.update_status(order_id, payload)


@router.delete("/orders/{order_id}")
def cancel_order(order_id: str, orders: OrderManager = Depends(get_orders)):
    return orders.cancel(order_id)


# Payments
@router.post("/payment-checkout-session")
def create_checkout_session(payload: CheckoutRequest, payments: PaymentBridge = Depends(get_payments)):
    return payments.initiate(payload)


# Tracking
@router.post("/tracking/{order_id}")
def add_tracking_step(order_id: str, step: TrackingStepIn, tracking: TrackingLog = Depends(get_tracking)):
    return tracking.append(order_id, step)


@router.get("/tracking/{order_id}")
def get_tracking_timeline(order_id: str, tracking: TrackingLog = Depends(get_tracking)):
    return tracking.timeline(order_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(app.state.store)
    yield
    app.state.store.close()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """Build the API with explicitly owned store and gateway handles."""
    settings = settings or Settings.from_env()
    configure_logging(settings.environment, settings.log_level)
    store = store if store is not None else build_store(settings)
    gateway = gateway if gateway is not None else build_gateway(settings)

    app = FastAPI(title="Textila Garments Order API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    orders = OrderManager(store)
    app.state.settings = settings
    app.state.store = store
    app.state.users = UserDirectory(store)
    app.state.products = ProductCatalog(store)
    app.state.orders = orders
    app.state.tracking = TrackingLog(store)
    app.state.payments = PaymentBridge(gateway, orders, settings.site_domain, settings.currency)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        clear_context()
        request_id = request.headers.get("x-request-id") or uuid4().hex
        add_context(request_id=request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error", method=request.method, path=request.url.path)
            raise
        logger.info(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.kind == ErrorKind.upstream_failure:
            logger.warning("Upstream failure", path=request.url.path, detail=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=STATUS_CODES[ErrorKind.invalid_argument],
            content={"detail": jsonable_encoder(exc.errors()), "kind": ErrorKind.invalid_argument.value},
        )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
