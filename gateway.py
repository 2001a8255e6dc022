"""Payment processor port and adapters.

``PaymentGateway`` is the contract the payment bridge codes against.
``StripeGateway`` talks to Stripe Checkout; ``FakeGateway`` keeps
sessions in memory for local runs and tests and can be told to mark a
session as paid or to fail like the processor would.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Dict, Optional
from uuid import uuid4

import stripe

from errors import UpstreamFailure
from log_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    """The parts of a processor checkout session the API cares about."""

    id: str
    url: Optional[str]
    payment_status: str
    amount_total: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    payment_intent: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


class PaymentGateway(ABC):
    """Abstract payment processor interface."""

    @abstractmethod
    def create_checkout_session(
        self,
        product_name: str,
        unit_amount: int,
        quantity: int,
        currency: str,
        metadata: Dict[str, str],
        customer_email: Optional[str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a one-line-item checkout session. ``unit_amount`` is in minor units."""
        ...

    @abstractmethod
    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        """Fetch a checkout session by id."""
        ...


def _metadata(obj) -> Dict[str, str]:
    if obj is None:
        return {}
    # StripeObject is not a dict on current stripe-python releases.
    data = obj.to_dict() if hasattr(obj, "to_dict") else dict(obj)
    return {key: str(value) for key, value in data.items()}


class StripeGateway(PaymentGateway):
    """Stripe Checkout adapter."""

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    @staticmethod
    def _to_session(session) -> CheckoutSession:
        intent = session.payment_intent
        if intent is not None and not isinstance(intent, str):
            intent = intent.id
        return CheckoutSession(
            id=session.id,
            url=session.url,
            payment_status=session.payment_status,
            amount_total=session.amount_total,
            metadata=_metadata(session.metadata),
            payment_intent=intent,
        )

    def create_checkout_session(
        self,
        product_name,
        unit_amount,
        quantity,
        currency,
        metadata,
        customer_email,
        success_url,
        cancel_url,
    ):
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": currency,
                            "product_data": {"name": product_name},
                            "unit_amount": unit_amount,
                        },
                        "quantity": quantity,
                    }
                ],
                metadata=metadata,
                customer_email=customer_email,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe session creation failed", error=str(exc))
            raise UpstreamFailure(f"Payment processor error: {exc.user_message or exc}") from exc
        return self._to_session(session)

    def retrieve_checkout_session(self, session_id):
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.error("Stripe session lookup failed", session_id=session_id, error=str(exc))
            raise UpstreamFailure(f"Payment processor error: {exc.user_message or exc}") from exc
        return self._to_session(session)


class FakeGateway(PaymentGateway):
    """Configurable in-memory payment gateway."""

    def __init__(self, checkout_base_url: str = "https://checkout.stripe.test/pay") -> None:
        self.checkout_base_url = checkout_base_url
        self.sessions: Dict[str, CheckoutSession] = {}
        self.calls: list = []
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment processor unavailable"

    def configure(self, should_succeed: bool, failure_reason: str = "Payment processor unavailable") -> None:
        """Make subsequent calls succeed or fail with ``failure_reason``."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def _check(self) -> None:
        if not self.should_succeed:
            raise UpstreamFailure(f"Payment processor error: {self.failure_reason}")

    def create_checkout_session(
        self,
        product_name,
        unit_amount,
        quantity,
        currency,
        metadata,
        customer_email,
        success_url,
        cancel_url,
    ):
        self.calls.append(
            {
                "method": "create_checkout_session",
                "product_name": product_name,
                "unit_amount": unit_amount,
                "quantity": quantity,
                "currency": currency,
                "metadata": dict(metadata),
                "customer_email": customer_email,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
        )
        self._check()
        session_id = f"cs_test_{uuid4().hex}"
        session = CheckoutSession(
            id=session_id,
            url=f"{self.checkout_base_url}/{session_id}",
            payment_status="unpaid",
            amount_total=unit_amount * quantity,
            metadata=dict(metadata),
        )
        self.sessions[session_id] = session
        return session

    def retrieve_checkout_session(self, session_id):
        self.calls.append({"method": "retrieve_checkout_session", "session_id": session_id})
        self._check()
        try:
            return self.sessions[session_id]
        except KeyError:
            raise UpstreamFailure(f"No such checkout session: {session_id}")

    def mark_paid(self, session_id: str) -> CheckoutSession:
        """Simulate the buyer completing checkout."""
        session = replace(
            self.sessions[session_id],
            payment_status="paid",
            payment_intent=f"pi_test_{uuid4().hex[:24]}",
        )
        self.sessions[session_id] = session
        return session


def build_gateway(settings) -> PaymentGateway:
    if settings.stripe_secret_key:
        return StripeGateway(settings.stripe_secret_key)
    logger.warning("STRIPE_SECRET_KEY not set, using fake payment gateway")
    return FakeGateway()
