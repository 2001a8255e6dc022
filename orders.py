"""Order lifecycle: placement, listing, status changes and cancellation.

Orders come from two places. ``create`` records an unpaid order exactly as
the client sends it; ``payments.PaymentBridge.confirm`` records a paid one
after the processor reports the checkout session as paid. Either way the
server owns ``status``, ``paymentStatus`` and ``createdAt``.

Nothing here checks that ``productId`` points at a real product or that
``orderTotal`` matches the price; those remain the client's problem.
"""

from typing import Optional

from database import (
    NEWEST_FIRST,
    ORDERS,
    DocumentStore,
    create_document,
    get_documents,
    insert_ack,
    parse_object_id,
    to_dict,
    utcnow,
)
from errors import Conflict, InvalidArgument, NotFound
from log_config import get_logger
from schemas import OrderIn, OrderStatus, OrderStatusUpdate, PaymentStatus

logger = get_logger(__name__)

STATUS_TRANSITIONS = {
    OrderStatus.pending: {OrderStatus.approved, OrderStatus.rejected},
    OrderStatus.approved: set(),
    OrderStatus.rejected: set(),
}

# Fields only the server may write on an order.
SERVER_FIELDS = ("status", "paymentStatus", "createdAt", "sessionId", "transactionId", "paidAt")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return current == target or target in STATUS_TRANSITIONS[current]


class OrderManager:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create(self, order: OrderIn) -> dict:
        doc = {k: v for k, v in order.to_document().items() if k not in SERVER_FIELDS}
        doc["status"] = OrderStatus.pending.value
        doc["paymentStatus"] = PaymentStatus.unpaid.value
        order_id = create_document(self.store, ORDERS, doc)
        logger.info("Order created", order_id=order_id, product_id=doc["productId"], quantity=doc["quantity"])
        return insert_ack(order_id)

    def record_paid(self, fields: dict) -> str:
        """Insert an order for a completed checkout. Returns the new id.

        Raises ``Conflict`` if an order for the same ``sessionId`` exists.
        """
        doc = dict(fields)
        doc["status"] = OrderStatus.pending.value
        doc["paymentStatus"] = PaymentStatus.paid.value
        return create_document(self.store, ORDERS, doc)

    def list(self, buyer_email: Optional[str] = None) -> list:
        filt = {"buyerEmail": buyer_email} if buyer_email is not None else {}
        return get_documents(self.store, ORDERS, filt, sort=NEWEST_FIRST)

    def get(self, order_id: str) -> dict:
        oid = parse_object_id(order_id)
        return to_dict(self.store.find_one(ORDERS, {"_id": oid})) or {}

    def find_by_session(self, session_id: str) -> Optional[dict]:
        return to_dict(self.store.find_one(ORDERS, {"sessionId": session_id}))

    def update_status(self, order_id: str, update: OrderStatusUpdate) -> dict:
        oid = parse_object_id(order_id)
        changes = update.changes()
        if not changes:
            raise InvalidArgument("No fields to update")

        existing = self.store.find_one(ORDERS, {"_id": oid})
        if not existing:
            raise NotFound("Order not found")
        if update.status is not None:
            try:
                current = OrderStatus(existing.get("status", OrderStatus.pending.value))
            except ValueError:
                raise Conflict(f"Order has unknown status {existing.get('status')!r}")
            if not can_transition(current, update.status):
                raise Conflict(f"Cannot move order from {current.value} to {update.status.value}")

        changes["updatedAt"] = utcnow()
        matched = self.store.update_one(ORDERS, {"_id": oid}, changes)
        logger.info("Order updated", order_id=order_id, changes=sorted(changes))
        return {"matchedCount": matched}

    def cancel(self, order_id: str) -> dict:
        oid = parse_object_id(order_id)
        deleted = self.store.delete_one(ORDERS, {"_id": oid})
        if not deleted:
            raise NotFound("Order not found")
        logger.info("Order cancelled", order_id=order_id)
        return {"deletedCount": deleted}
