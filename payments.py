"""Checkout flow: start a processor session, then turn a paid one into an order.

Starting a checkout writes nothing locally; an abandoned session leaves no
trace. Confirmation is keyed on the session id, so confirming the same
session again returns the order recorded the first time instead of
creating another one.
"""

from database import utcnow
from errors import Conflict, InvalidArgument
from gateway import PaymentGateway
from log_config import get_logger
from orders import OrderManager
from schemas import CheckoutRequest

logger = get_logger(__name__)

SUCCESS_PATH = "/dashboard/payment-success?session_id={CHECKOUT_SESSION_ID}"
CANCEL_PATH = "/dashboard/payment-cancelled"


def to_minor_units(price: float) -> int:
    """Major currency units to cents, rounded to the nearest minor unit."""
    return int(round(price * 100))


class PaymentBridge:
    def __init__(self, gateway: PaymentGateway, orders: OrderManager, site_domain: str, currency: str = "usd"):
        self.gateway = gateway
        self.orders = orders
        self.site_domain = site_domain.rstrip("/")
        self.currency = currency

    def initiate(self, request: CheckoutRequest) -> dict:
        session = self.gateway.create_checkout_session(
            product_name=request.product_name,
            unit_amount=to_minor_units(request.price),
            quantity=request.quantity,
            currency=self.currency,
            metadata={
                "productId": request.product_id,
                "quantity": str(request.quantity),
                "buyerEmail": request.buyer_email,
            },
            customer_email=request.buyer_email,
            success_url=self.site_domain + SUCCESS_PATH,
            cancel_url=self.site_domain + CANCEL_PATH,
        )
        logger.info("Checkout session created", session_id=session.id, product_id=request.product_id)
        return {"url": session.url}

    def confirm(self, session_id: str) -> dict:
        existing = self.orders.find_by_session(session_id)
        if existing:
            logger.info("Checkout session already confirmed", session_id=session_id, order_id=existing["id"])
            return {"orderId": existing["id"], "created": False}

        session = self.gateway.retrieve_checkout_session(session_id)
        if not session.is_paid:
            logger.info("Checkout session not paid", session_id=session_id, payment_status=session.payment_status)
            raise InvalidArgument("Payment not completed")

        metadata = session.metadata
        fields = {
            "productId": metadata.get("productId"),
            "buyerEmail": metadata.get("buyerEmail"),
            "quantity": int(metadata.get("quantity") or 0),
            "orderTotal": (session.amount_total or 0) / 100,
            "sessionId": session.id,
            "transactionId": session.payment_intent,
            "paidAt": utcnow(),
        }
        try:
            order_id = self.orders.record_paid(fields)
        except Conflict:
            # A concurrent confirm for the same session won the insert.
            existing = self.orders.find_by_session(session_id)
            if not existing:
                raise
            return {"orderId": existing["id"], "created": False}

        logger.info("Paid order recorded", order_id=order_id, session_id=session_id, total=fields["orderTotal"])
        return {"orderId": order_id, "created": True}
