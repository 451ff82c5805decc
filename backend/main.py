"""
Zule Mesh Store - FastAPI Backend
Solana Pay checkout with order tracking and email confirmation

ARCHITECTURE:
- Payment Service: issues Solana Pay requests (URL or QR) and verifies them
- Payment Registry: in-memory map of pending references (lost on restart)
- Ledger: Solana JSON-RPC lookups for the transfer behind a reference
- Order Service: checkout, tracking and the paid transition (MongoDB)
- Notification Service: order confirmation email over SMTP

TRUST BOUNDARY:
/api/payment/success records whatever reference it is given. Clients are
expected to have seen "verified" from /api/payment/verify first.
"""

import logging
from typing import Any, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import config
import order_service
import payment_service
from database import OrderStore
from errors import StoreError, UpstreamError, ValidationError
from ledger import SolanaLedger
from notification_service import SmtpMailer, send_confirmation
from payment_registry import PaymentRegistry
from solana_pay import parse_public_key

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Zule Mesh Store",
    description="Solana Pay checkout with order tracking",
    version="1.0.0"
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============= Dependencies =============

_registry = PaymentRegistry(ttl_seconds=config.PAYMENT_REQUEST_TTL_SECONDS)
_order_store: Optional[OrderStore] = None


def get_registry() -> PaymentRegistry:
    return _registry


def get_order_store() -> OrderStore:
    global _order_store
    if _order_store is None:
        _order_store = OrderStore()
        _order_store.ensure_indexes()
    return _order_store


def get_ledger() -> SolanaLedger:
    return SolanaLedger()


def get_mailer() -> SmtpMailer:
    return SmtpMailer()


# ============= Request/Response Models =============

class PaymentRequestBody(BaseModel):
    """Total in SOL; zero or less falls back to the default amount"""
    total: Optional[Any] = None


class PaymentUrlResponse(BaseModel):
    url: str
    ref: str


class PaymentQrResponse(BaseModel):
    qrCode: str
    ref: str


class VerifyResponse(BaseModel):
    status: str


class OrderItem(BaseModel):
    name: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = 1
    price: float = 0


class CheckoutRequest(BaseModel):
    """Required fields are checked by the order service"""
    fullName: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postalCode: Optional[str] = None
    country: Optional[str] = None
    total: Optional[float] = None
    items: Optional[List[OrderItem]] = None


class CheckoutResponse(BaseModel):
    orderId: str
    message: str


class PaymentSuccessRequest(BaseModel):
    reference: Optional[str] = None
    orderId: Optional[str] = None


class PaymentSuccessResponse(BaseModel):
    message: str
    orderId: str
    txHash: str


# ============= Error Handlers =============

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        field = ".".join(str(part) for part in errors[0].get("loc", ())[1:])
        message = f"Invalid request field: {field}" if field else "Invalid request body"
    else:
        message = "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


# ============= API Endpoints =============

@app.get("/ping")
async def ping():
    """Liveness check"""
    return {"message": "ZULE to the moon"}


@app.get("/health")
async def health_check(registry: PaymentRegistry = Depends(get_registry)):
    return {
        "status": "healthy",
        "pending_payments": len(registry),
        "qr_enabled": config.ENABLE_QR
    }


@app.post("/api/payment/request", response_model=PaymentUrlResponse)
async def create_payment_url(
    body: Optional[PaymentRequestBody] = None,
    registry: PaymentRegistry = Depends(get_registry)
):
    """Create a Solana Pay request and return its URL and reference."""
    result = payment_service.create_payment_request(
        registry,
        total=body.total if body else None,
        recipient=config.STORE_WALLET
    )
    return PaymentUrlResponse(url=result.url, ref=result.reference)


async def create_payment_qr(
    body: Optional[PaymentRequestBody] = None,
    registry: PaymentRegistry = Depends(get_registry)
):
    """Same as /api/payment/request, with the URL rendered as a QR PNG."""
    result = payment_service.create_payment_request(
        registry,
        total=body.total if body else None,
        with_qr=True,
        recipient=config.STORE_WALLET
    )
    return PaymentQrResponse(qrCode=result.qr_code, ref=result.reference)


if config.ENABLE_QR:
    app.post("/api/payment/qr", response_model=PaymentQrResponse)(create_payment_qr)
    if config.ENABLE_LEGACY_ROUTES:
        app.post("/api/payment/qr-live", response_model=PaymentQrResponse)(create_payment_qr)


@app.get("/api/payment/verify", response_model=VerifyResponse)
async def verify_payment(
    reference: Optional[str] = None,
    registry: PaymentRegistry = Depends(get_registry),
    ledger: SolanaLedger = Depends(get_ledger)
):
    """
    Poll for the transfer behind a reference.

    Answers "not found" until a matching transfer validates; after that
    the reference is consumed and later calls answer "not found" again.
    """
    if not reference:
        raise ValidationError("Missing reference query parameter")
    parse_public_key(reference)

    result = await payment_service.verify_payment(registry, ledger, reference)
    return VerifyResponse(status=result.status)


@app.post("/api/checkout", response_model=CheckoutResponse)
def checkout(request: CheckoutRequest, store: OrderStore = Depends(get_order_store)):
    order = order_service.checkout(
        store,
        full_name=request.fullName,
        email=request.email,
        address=request.address,
        total=request.total,
        items=[item.model_dump() for item in request.items] if request.items else None,
        city=request.city,
        state=request.state,
        postal_code=request.postalCode,
        country=request.country
    )
    return CheckoutResponse(
        orderId=order["orderId"],
        message="Checkout successful, proceed with payment"
    )


@app.post("/api/payment/success", response_model=PaymentSuccessResponse)
def payment_success(
    request: PaymentSuccessRequest,
    store: OrderStore = Depends(get_order_store),
    mailer: SmtpMailer = Depends(get_mailer)
):
    """
    Record a paid order and email the confirmation.

    The order is saved before the email goes out, so an email failure
    leaves the order in "processing" and is reported with its own message.
    """
    if not request.reference or not request.orderId:
        raise ValidationError("Missing reference or orderId")

    order = order_service.mark_paid(store, request.orderId, request.reference)

    try:
        send_confirmation(mailer, order)
    except UpstreamError as e:
        logger.error("Order %s paid but confirmation email failed", request.orderId)
        raise UpstreamError("Payment recorded but confirmation email could not be sent") from e

    return PaymentSuccessResponse(
        message="Payment success recorded and email sent",
        orderId=request.orderId,
        txHash=request.reference
    )


@app.get("/api/tracking")
def track_order(
    email: Optional[str] = None,
    orderId: Optional[str] = None,
    store: OrderStore = Depends(get_order_store)
):
    return order_service.track(store, email, orderId)


# ============= Debug Endpoints =============

@app.get("/debug/config")
async def get_config():
    """Non-secret configuration"""
    return {
        "store_wallet": config.STORE_WALLET,
        "store_label": config.STORE_LABEL,
        "default_amount": str(config.DEFAULT_AMOUNT),
        "ledger_timeout_seconds": config.LEDGER_TIMEOUT_SECONDS,
        "smtp_timeout_seconds": config.SMTP_TIMEOUT_SECONDS,
        "payment_request_ttl_seconds": config.PAYMENT_REQUEST_TTL_SECONDS,
        "enable_qr": config.ENABLE_QR,
        "enable_legacy_routes": config.ENABLE_LEGACY_ROUTES
    }


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT)
